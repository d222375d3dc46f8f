"""Sequential scan of a machine code buffer.

Decodes the buffer one instruction at a time from offset 0, runs every
enabled rule against each instruction and advances by the decoded length.
A decode failure ends the scan; it is never reported as a finding.
"""

from __future__ import annotations

import logging

from .decoder import Decoder, get_decoder
from .errors import DecodeError
from .rules import RuleContext, RuleRegistry, get_registry
from .schemas import Finding, ScanResult, ScanStatus

logger = logging.getLogger(__name__)


def scan(
    code: bytes,
    decoder: Decoder | None = None,
    registry: RuleRegistry | None = None,
) -> ScanResult:
    """Scan a buffer of x86-64 machine code for suboptimal encodings.

    Args:
        code: The machine code, e.g. the contents of a .text section.
        decoder: Decoder to use (the process-wide one if None).
        registry: Rules to run (the global registry if None).

    Returns:
        ScanResult with findings in offset order. On a decode failure the
        status is DECODE_FAILED and no findings past that offset exist.
    """
    code = bytes(code)
    decoder = decoder or get_decoder()
    registry = registry or get_registry()

    result = ScanResult(byte_length=len(code))
    findings: list[Finding] = []

    offset = 0
    while offset < len(code):
        try:
            insn = decoder.decode(code, offset)
        except DecodeError as e:
            logger.warning(f"Stopping scan: {e}")
            result.status = ScanStatus.DECODE_FAILED
            result.failed_offset = offset
            break

        ctx = RuleContext(code=code, instruction=insn, decoder=decoder)
        for finding in registry.evaluate(ctx):
            logger.debug(f"{finding.rule_id} at offset {finding.offset}: {finding.text}")
            findings.append(finding)

        result.instruction_count += 1
        offset += insn.length

    result.findings = findings

    logger.debug(
        f"Scanned {result.instruction_count} instructions in {len(code)} bytes: "
        f"{len(findings)} findings ({result.status.value})"
    )
    return result

"""Decoder adapter around capstone.

Turns raw bytes at an offset into a DecodedInstruction. The capstone
handle is created once per process by get_decoder(); scans share it.
"""

from __future__ import annotations

import logging
from functools import lru_cache

import capstone
from capstone import x86

from .classifier import (
    classify_iform,
    classify_mnemonic,
    has_lock_prefix,
    sign_extend,
    split_prefixes,
)
from .errors import DecodeError
from .schemas import DecodedInstruction

logger = logging.getLogger(__name__)


# Architectural limit on the length of one x86 instruction
MAX_INSTRUCTION_LENGTH = 15

IMMEDIATE_WIDTHS = (8, 16, 32, 64)


class Decoder:
    """Decode x86-64 instructions in 64-bit mode."""

    def __init__(self) -> None:
        self._cs = capstone.Cs(capstone.CS_ARCH_X86, capstone.CS_MODE_64)
        self._cs.detail = True
        logger.debug(f"Initialized capstone {capstone.__version__} for x86-64")

    def decode(self, code: bytes, offset: int = 0) -> DecodedInstruction:
        """Decode the instruction starting at offset.

        Args:
            code: Buffer holding machine code.
            offset: Position of the instruction within code.

        Returns:
            The decoded instruction.

        Raises:
            DecodeError: If no whole instruction can be decoded at offset.
        """
        if offset < 0 or offset >= len(code):
            raise DecodeError(offset, "offset outside buffer")

        window = bytes(code[offset : offset + MAX_INSTRUCTION_LENGTH])
        insn = next(self._cs.disasm(window, offset, 1), None)
        if insn is None:
            raise DecodeError(offset)

        return self._convert(insn, offset)

    def _convert(self, insn: capstone.CsInsn, offset: int) -> DecodedInstruction:
        raw = bytes(insn.bytes)

        registers: list[str | None] = []
        segments: list[str | None] = []
        memory: list[tuple[str | None, str | None]] = []

        for op in insn.operands:
            if op.type == x86.X86_OP_REG:
                registers.append(_reg_name(insn, op.reg))
            elif op.type == x86.X86_OP_MEM:
                memory.append((_reg_name(insn, op.mem.base), _reg_name(insn, op.mem.index)))
                segments.append(_reg_name(insn, op.mem.segment))

        reg_pair = _pair(registers)
        iclass = classify_mnemonic(insn.insn_name(), reg_pair)

        # Immediate width and value come from the encoding itself so the
        # value is independent of how the decoder extends it per operand size.
        width = insn.imm_size * 8
        value = 0
        if width in IMMEDIATE_WIDTHS and insn.imm_offset + insn.imm_size <= len(raw):
            start = insn.imm_offset
            value = sign_extend(
                int.from_bytes(raw[start : start + insn.imm_size], "little"), width
            )
        else:
            width = 0

        _, rex, _ = split_prefixes(raw)

        return DecodedInstruction(
            offset=offset,
            iclass=iclass,
            length=insn.size,
            raw_bytes=raw,
            iform=classify_iform(iclass, raw),
            rex=rex,
            immediate_width_bits=width,
            immediate_value=value,
            operand_registers=reg_pair,
            segment_registers=_pair(segments),
            memory_operands=tuple(memory),
            has_modrm=insn.modrm_offset != 0,
            has_lock_prefix=has_lock_prefix(raw),
            mnemonic=insn.mnemonic,
            op_str=insn.op_str,
        )


def _reg_name(insn: capstone.CsInsn, reg_id: int) -> str | None:
    if not reg_id:
        return None
    name = insn.reg_name(reg_id)
    return name.lower() if name else None


def _pair(items: list[str | None]) -> tuple[str | None, str | None]:
    first = items[0] if len(items) > 0 else None
    second = items[1] if len(items) > 1 else None
    return first, second


@lru_cache(maxsize=1)
def get_decoder() -> Decoder:
    """Get the process-wide decoder, creating it on first use."""
    return Decoder()

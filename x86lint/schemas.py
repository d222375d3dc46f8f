"""Data models for instruction linting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class InstructionClass(Enum):
    """Instruction classes the rules distinguish.

    Values are the decoder's mnemonic spelling. Everything else decodes as
    OTHER, so the set is closed over whatever the decoder can produce.
    """

    # Arithmetic and logic with immediates
    ADC = "adc"
    ADD = "add"
    AND = "and"
    CMP = "cmp"
    IMUL = "imul"
    MOV = "mov"
    OR = "or"
    SBB = "sbb"
    SUB = "sub"
    TEST = "test"
    XOR = "xor"

    # Shifts and rotates
    RCL = "rcl"
    RCR = "rcr"
    ROL = "rol"
    ROR = "ror"
    SAL = "sal"
    SAR = "sar"
    SHL = "shl"
    SHR = "shr"

    # Atomic primitives
    CMPXCHG = "cmpxchg"
    CMPXCHG8B = "cmpxchg8b"
    CMPXCHG16B = "cmpxchg16b"
    XADD = "xadd"
    XCHG = "xchg"

    # Instructions defaulting to 64-bit operand size
    CALL_NEAR = "call"
    ENTER = "enter"
    JMP = "jmp"
    JB = "jb"
    JBE = "jbe"
    JL = "jl"
    JLE = "jle"
    JNB = "jae"
    JNBE = "ja"
    JNL = "jge"
    JNLE = "jg"
    JNO = "jno"
    JNP = "jnp"
    JNS = "jns"
    JNZ = "jne"
    JO = "jo"
    JP = "jp"
    JS = "js"
    JZ = "je"
    JCXZ = "jcxz"
    JECXZ = "jecxz"
    JRCXZ = "jrcxz"
    LEAVE = "leave"
    LGDT = "lgdt"
    LIDT = "lidt"
    LLDT = "lldt"
    LOOP = "loop"
    LOOPE = "loope"
    LOOPNE = "loopne"
    LTR = "ltr"
    MOV_CR = "mov cr"
    MOV_DR = "mov dr"
    POPFQ = "popfq"
    PUSHFQ = "pushfq"
    RET_NEAR = "ret"

    NOP = "nop"

    OTHER = "other"


class IForm(Enum):
    """Encoding variant for instructions sharing a class."""

    DEFAULT = "default"

    # Shift/rotate group 2 opcodes
    SHIFT_BY_ONE = "shift_by_one"  # D0, D1
    SHIFT_BY_CL = "shift_by_cl"  # D2, D3
    SHIFT_BY_IMM8 = "shift_by_imm8"  # C0, C1


@dataclass(frozen=True)
class DecodedInstruction:
    """A single decoded instruction."""

    offset: int
    iclass: InstructionClass
    length: int
    raw_bytes: bytes
    iform: IForm = IForm.DEFAULT

    # REX prefix byte, or 0 when the instruction has none
    rex: int = 0

    immediate_width_bits: int = 0  # 0, 8, 16, 32 or 64
    immediate_value: int = 0  # sign-extended from immediate_width_bits

    operand_registers: tuple[str | None, str | None] = (None, None)
    segment_registers: tuple[str | None, str | None] = (None, None)
    memory_operands: tuple[tuple[str | None, str | None], ...] = ()

    has_modrm: bool = False
    has_lock_prefix: bool = False

    # Disassembly text
    mnemonic: str = ""
    op_str: str = ""

    @property
    def raw_prefix_byte(self) -> int:
        """First byte of the encoding."""
        return self.raw_bytes[0] if self.raw_bytes else 0

    @property
    def has_rex(self) -> bool:
        return self.rex != 0

    @property
    def rex_w(self) -> bool:
        return bool(self.rex & 0x08)

    @property
    def has_immediate(self) -> bool:
        return self.immediate_width_bits > 0

    @property
    def unsigned_immediate(self) -> int:
        """Immediate zero-extended from its encoded width."""
        if not self.immediate_width_bits:
            return 0
        return self.immediate_value & ((1 << self.immediate_width_bits) - 1)

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def text(self) -> str:
        if self.op_str:
            return f"{self.mnemonic} {self.op_str}"
        return self.mnemonic


class Outcome(Enum):
    """Result of evaluating one rule against one instruction."""

    OPTIMAL = "optimal"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class Verdict:
    """Rule outcome, with a diagnostic reason when flagged."""

    outcome: Outcome
    reason: str = ""

    @property
    def flagged(self) -> bool:
        return self.outcome is Outcome.FLAGGED


OPTIMAL = Verdict(Outcome.OPTIMAL)


def flagged(reason: str) -> Verdict:
    """Build a FLAGGED verdict."""
    return Verdict(Outcome.FLAGGED, reason)


@dataclass(frozen=True)
class Finding:
    """A detected suboptimal encoding."""

    rule_id: str
    offset: int
    byte_length: int
    raw_bytes: bytes

    # Human-readable explanation
    message: str

    # Disassembly of the flagged instruction
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "offset": self.offset,
            "byte_length": self.byte_length,
            "bytes": self.raw_bytes.hex(),
            "message": self.message,
            "text": self.text,
        }


class ScanStatus(Enum):
    """Terminal status of a scan."""

    COMPLETED = "completed"
    DECODE_FAILED = "decode_failed"


@dataclass
class ScanResult:
    """Findings of one scan plus how the scan ended."""

    status: ScanStatus = ScanStatus.COMPLETED
    findings: list[Finding] = field(default_factory=list)

    # Offset of the undecodable instruction when status is DECODE_FAILED
    failed_offset: int | None = None

    instruction_count: int = 0
    byte_length: int = 0

    @property
    def completed(self) -> bool:
        return self.status is ScanStatus.COMPLETED

    @property
    def count(self) -> int | None:
        """Number of findings, or None when the scan did not complete."""
        if not self.completed:
            return None
        return len(self.findings)

    def to_dict(self) -> dict[str, Any]:
        rule_counts: dict[str, int] = {}
        for finding in self.findings:
            rule_counts[finding.rule_id] = rule_counts.get(finding.rule_id, 0) + 1

        return {
            "status": self.status.value,
            "summary": {
                "byte_length": self.byte_length,
                "instruction_count": self.instruction_count,
                "finding_count": self.count,
                "failed_offset": self.failed_offset,
            },
            "rule_counts": rule_counts,
            "findings": [f.to_dict() for f in self.findings],
        }

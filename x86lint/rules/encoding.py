"""Rules: encodings with bytes a shorter form of the same instruction avoids.

Pattern detection:
- REX prefix that selects nothing the instruction needs
- ModRM-encoded accumulator where the implicit accumulator form exists
- Shift/rotate with an explicit imm8 of 1 instead of the by-one opcode
"""

from __future__ import annotations

from .base import Rule
from ..classifier import ACCUMULATORS, is_rex_register
from ..schemas import (
    OPTIMAL,
    DecodedInstruction,
    IForm,
    InstructionClass,
    Verdict,
    flagged,
)


# Instructions whose behavior does not depend on REX.W in 64-bit mode
REX_INSENSITIVE_CLASSES = frozenset({
    InstructionClass.CALL_NEAR,
    InstructionClass.ENTER,
    InstructionClass.JB,
    InstructionClass.JBE,
    InstructionClass.JL,
    InstructionClass.JLE,
    InstructionClass.JNB,
    InstructionClass.JNBE,
    InstructionClass.JNL,
    InstructionClass.JNLE,
    InstructionClass.JNO,
    InstructionClass.JNP,
    InstructionClass.JNS,
    InstructionClass.JNZ,
    InstructionClass.JO,
    InstructionClass.JP,
    InstructionClass.JS,
    InstructionClass.JZ,
    InstructionClass.JCXZ,
    InstructionClass.JECXZ,
    InstructionClass.JRCXZ,
    InstructionClass.JMP,
    InstructionClass.LEAVE,
    InstructionClass.LGDT,
    InstructionClass.LIDT,
    InstructionClass.LLDT,
    InstructionClass.LOOP,
    InstructionClass.LOOPE,
    InstructionClass.LOOPNE,
    InstructionClass.LTR,
    InstructionClass.MOV_CR,
    InstructionClass.MOV_DR,
    InstructionClass.POPFQ,
    InstructionClass.PUSHFQ,
    InstructionClass.RET_NEAR,
})

IMPLICIT_REGISTER_CLASSES = frozenset({
    InstructionClass.ADC,
    InstructionClass.ADD,
    InstructionClass.AND,
    InstructionClass.CMP,
    InstructionClass.OR,
    InstructionClass.SBB,
    InstructionClass.SUB,
    InstructionClass.TEST,
    InstructionClass.XOR,
})

# SHL/SAL by an explicit 1 are left alone
IMPLICIT_IMMEDIATE_CLASSES = frozenset({
    InstructionClass.RCL,
    InstructionClass.RCR,
    InstructionClass.ROL,
    InstructionClass.ROR,
    InstructionClass.SAR,
    InstructionClass.SHR,
})


def uses_rex_register(insn: DecodedInstruction) -> bool:
    """Check whether any operand names a register that needs REX."""
    for base, index in insn.memory_operands:
        if is_rex_register(base) or is_rex_register(index):
            return True
    return any(
        is_rex_register(reg)
        for reg in (*insn.operand_registers, *insn.segment_registers)
    )


class UnneededRexRule(Rule):
    """Detect REX prefixes with no effect on the instruction.

    A REX prefix must be encoded when:

    * using 64-bit operand size and the instruction does not default to
      64-bit operand size; or
    * using one of the extended registers (R8 to R15, XMM8 to XMM15,
      YMM8 to YMM15, CR8 to CR15 and DR8 to DR15); or
    * using one of the uniform byte registers SPL, BPL, SIL or DIL.
    """

    @property
    def name(self) -> str:
        return "unneeded_rex"

    @property
    def description(self) -> str:
        return "unneeded REX prefix"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is InstructionClass.LEAVE:
            if insn.has_rex:
                return flagged(f"unneeded REX prefix {insn.rex:#04x} on leave")
            return OPTIMAL

        if uses_rex_register(insn):
            return OPTIMAL

        # REX must come last before the opcode, so only a REX-first
        # encoding without legacy prefixes is considered here
        prefix = insn.raw_prefix_byte
        if (prefix & 0xF0) != 0x40:
            return OPTIMAL

        if insn.iclass in REX_INSENSITIVE_CLASSES:
            return flagged(f"unneeded REX prefix {prefix:#04x}: {insn.mnemonic} defaults to 64-bit")

        if insn.iclass is InstructionClass.XOR:
            # 32-bit result is zero-extended into the full register
            reg0, reg1 = insn.operand_registers
            if reg0 is not None and reg1 is not None:
                return flagged(f"unneeded REX prefix {prefix:#04x}: 32-bit xor zero-extends")

        if (prefix & 0x0F) == 0:
            return flagged(f"unneeded REX prefix {prefix:#04x}")

        return OPTIMAL


class ImplicitRegisterRule(Rule):
    """Detect explicit accumulator operands where an implicit form exists.

    ADD/ADC/AND/CMP/OR/SBB/SUB/TEST/XOR have short forms taking AL, AX or
    EAX/RAX implicitly, without a ModRM byte.
    """

    @property
    def name(self) -> str:
        return "implicit_register"

    @property
    def description(self) -> str:
        return "unneeded explicit register"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass not in IMPLICIT_REGISTER_CLASSES:
            return OPTIMAL

        if not insn.has_modrm or not insn.has_immediate:
            return OPTIMAL

        reg = insn.operand_registers[0]
        accumulators = ACCUMULATORS.get(insn.immediate_width_bits, frozenset())
        if reg in accumulators:
            return flagged(f"unneeded explicit register: {reg} has an implicit encoding")

        return OPTIMAL


class ImplicitImmediateRule(Rule):
    """Detect shifts and rotates by an explicit immediate 1."""

    @property
    def name(self) -> str:
        return "implicit_immediate"

    @property
    def description(self) -> str:
        return "unneeded explicit immediate"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass not in IMPLICIT_IMMEDIATE_CLASSES:
            return OPTIMAL

        if insn.iform is IForm.SHIFT_BY_IMM8 and insn.has_immediate and insn.immediate_value == 1:
            return flagged(f"unneeded explicit immediate: {insn.mnemonic} by 1 has a shorter form")

        return OPTIMAL

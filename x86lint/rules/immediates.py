"""Rules: immediates wider than necessary, or replaceable by an idiom.

Pattern detection:
- imm32 that fits a sign-extended imm8, imm64 that fits a sign-extended imm32
- add r, 128 instead of sub r, -128
- cmp r, 0 instead of test r, r
- mov r, 0 instead of xor r, r (off by default)
- and r, 0xff/0xffff/0xffffffff instead of movzx/mov
"""

from __future__ import annotations

from .base import Rule
from ..schemas import OPTIMAL, DecodedInstruction, InstructionClass, Verdict, flagged


INT8_MIN, INT8_MAX = -(1 << 7), (1 << 7) - 1
INT32_MIN, INT32_MAX = -(1 << 31), (1 << 31) - 1

OVERSIZED_IMMEDIATE_CLASSES = frozenset({
    InstructionClass.ADC,
    InstructionClass.ADD,
    InstructionClass.AND,
    InstructionClass.CMP,
    InstructionClass.IMUL,
    InstructionClass.MOV,
    InstructionClass.OR,
    InstructionClass.SBB,
    InstructionClass.SUB,
    InstructionClass.XOR,
})

# Byte, word and dword all-ones masks
AND_MASKS = frozenset({0xFF, 0xFFFF, 0xFFFFFFFF})


# TODO: consider valid uses of oversized immediates as alignment padding
class OversizedImmediateRule(Rule):
    """Detect immediates encoded wider than their value needs."""

    @property
    def name(self) -> str:
        return "oversized_immediate"

    @property
    def description(self) -> str:
        return "oversized immediate"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if not insn.has_immediate or insn.iclass not in OVERSIZED_IMMEDIATE_CLASSES:
            return OPTIMAL

        imm = insn.immediate_value

        if insn.immediate_width_bits == 32:
            # MOV has no sign-extended imm8 form
            if insn.iclass is not InstructionClass.MOV and INT8_MIN <= imm <= INT8_MAX:
                return flagged(f"oversized immediate: {imm} fits in 8 bits")
        elif insn.immediate_width_bits == 64:
            # Signed range kept until sign vs. zero extension of mov r64, imm32
            # is checked against hardware.
            if INT32_MIN <= imm <= INT32_MAX:
                return flagged(f"oversized immediate: {imm} fits in 32 bits")

        return OPTIMAL


class OversizedAdd128Rule(Rule):
    """Detect add 128, which needs imm32 where sub -128 fits imm8."""

    @property
    def name(self) -> str:
        return "oversized_add128"

    @property
    def description(self) -> str:
        return "oversized add 128"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is not InstructionClass.ADD or not insn.has_immediate:
            return OPTIMAL

        if insn.immediate_width_bits in (32, 64) and insn.immediate_value == 128:
            return flagged("oversized add 128: use sub -128")

        return OPTIMAL


class CmpZeroRule(Rule):
    """Detect comparisons of a register against an explicit zero."""

    @property
    def name(self) -> str:
        return "cmp_zero"

    @property
    def description(self) -> str:
        return "compare with zero"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is not InstructionClass.CMP or not insn.has_immediate:
            return OPTIMAL

        # No shorter alternative for memory operands
        if insn.memory_operands:
            return OPTIMAL

        if insn.unsigned_immediate == 0:
            return flagged("compare with zero: use test")

        return OPTIMAL


class MovZeroRule(Rule):
    """Detect registers zeroed with mov instead of xor.

    Off by default: flag-preserving sequences such as those feeding CMOV
    need the mov, so the rule has false positives.
    """

    enabled_by_default = False

    @property
    def name(self) -> str:
        return "mov_zero"

    @property
    def description(self) -> str:
        return "suboptimal zero register"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is not InstructionClass.MOV or not insn.has_immediate:
            return OPTIMAL

        # Storing zero through xor needs a spare register
        if insn.memory_operands:
            return OPTIMAL

        if insn.immediate_width_bits == 32 and insn.immediate_value == 0:
            return flagged("suboptimal zero register: use xor")

        return OPTIMAL


class AndStrengthReduceRule(Rule):
    """Detect AND with an all-ones mask, equivalent to a zero-extending move."""

    @property
    def name(self) -> str:
        return "and_strength_reduce"

    @property
    def description(self) -> str:
        return "AND could be strength-reduced to MOVZX"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is not InstructionClass.AND or not insn.has_immediate:
            return OPTIMAL

        mask = insn.unsigned_immediate
        if mask in AND_MASKS:
            return flagged(f"AND with {mask:#x} could be strength-reduced to MOVZX")

        return OPTIMAL

"""Rule: NOP padding split into more instructions than needed.

Assemblers pad with the longest NOP encoding available before emitting
another NOP, so two adjacent NOPs where the first is shorter than the
longest form could have been merged. Runs of maximal NOPs are fine.

Pattern detection:
- nop ; nop
- nop dword ptr [rax] ; nop dword ptr [rax]
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from .base import Rule, RuleContext
from ..errors import DecodeError
from ..schemas import (
    OPTIMAL,
    DecodedInstruction,
    InstructionClass,
    Verdict,
    flagged,
)

if TYPE_CHECKING:
    from ..decoder import Decoder


# Longest recommended multi-byte NOP: 66 0F 1F 84 00 00 00 00 00
MAX_NOP_LENGTH = 9


def is_nop(insn: DecodedInstruction | None) -> bool:
    return insn is not None and insn.iclass is InstructionClass.NOP


def is_mergeable_pair(first: DecodedInstruction, second: DecodedInstruction | None) -> bool:
    """Check whether first is a non-maximal NOP directly followed by a NOP."""
    return is_nop(first) and first.length < MAX_NOP_LENGTH and is_nop(second)


def iter_nop_run(decoder: "Decoder", code: bytes, offset: int = 0) -> Iterator[DecodedInstruction]:
    """Yield consecutive NOPs starting at offset.

    Stops at the first instruction that is not a NOP, at the end of the
    buffer, or where decoding fails.
    """
    while offset < len(code):
        try:
            insn = decoder.decode(code, offset)
        except DecodeError:
            return
        if not is_nop(insn):
            return
        yield insn
        offset = insn.end


def check_suboptimal_nops(code: bytes, decoder: "Decoder | None" = None) -> Verdict:
    """Check the NOP run at the start of code for a mergeable pair.

    Standalone run checker for callers holding a padding buffer; scan()
    does not call it and relies on SuboptimalNopsRule.check_sequence,
    which looks at one adjacent pair per instruction.

    Args:
        code: Buffer starting with the NOP run.
        decoder: Decoder to use (the process-wide one if None).

    Returns:
        FLAGGED at the first mergeable pair, OPTIMAL otherwise.
    """
    if decoder is None:
        from ..decoder import get_decoder

        decoder = get_decoder()

    prev: DecodedInstruction | None = None
    for insn in iter_nop_run(decoder, code):
        if prev is not None and is_mergeable_pair(prev, insn):
            return _nop_verdict(prev, insn)
        prev = insn

    return OPTIMAL


def _nop_verdict(first: DecodedInstruction, second: DecodedInstruction) -> Verdict:
    return flagged(
        f"suboptimal NOP padding: {first.length}-byte NOP followed by "
        f"{second.length}-byte NOP at offset {second.offset}"
    )


class SuboptimalNopsRule(Rule):
    """Detect adjacent NOPs that a longer NOP could replace."""

    @property
    def name(self) -> str:
        return "suboptimal_nops"

    @property
    def description(self) -> str:
        return "suboptimal NOP padding"

    def check(self, insn: DecodedInstruction) -> Verdict:
        """Check single instruction - not applicable for this rule."""
        return OPTIMAL

    def check_sequence(self, ctx: RuleContext) -> Verdict:
        """Check the current NOP against the instruction after it."""
        insn = ctx.instruction
        if not is_nop(insn) or insn.length >= MAX_NOP_LENGTH:
            return OPTIMAL

        # Last instruction of the buffer
        if not ctx.following:
            return OPTIMAL

        following = ctx.next_instruction()
        if is_mergeable_pair(insn, following):
            return _nop_verdict(insn, following)

        return OPTIMAL

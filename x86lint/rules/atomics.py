"""Rules: LOCK prefixes that are missing or redundant.

CMPXCHG and XADD are used almost exclusively as atomic primitives, so an
unlocked encoding is more likely a correctness bug than a missed byte.
XCHG with memory is atomic without a prefix.
"""

from __future__ import annotations

from .base import Rule
from ..schemas import OPTIMAL, DecodedInstruction, InstructionClass, Verdict, flagged


LOCKABLE_ATOMIC_CLASSES = frozenset({
    InstructionClass.CMPXCHG,
    InstructionClass.CMPXCHG8B,
    InstructionClass.CMPXCHG16B,
    InstructionClass.XADD,
})


class MissingLockPrefixRule(Rule):
    """Detect atomic read-modify-write instructions without LOCK."""

    @property
    def name(self) -> str:
        return "missing_lock_prefix"

    @property
    def description(self) -> str:
        return "missing LOCK prefix"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass not in LOCKABLE_ATOMIC_CLASSES:
            return OPTIMAL

        if not insn.has_lock_prefix:
            return flagged(f"missing LOCK prefix on {insn.mnemonic}")

        return OPTIMAL


class SuperfluousLockPrefixRule(Rule):
    """Detect LOCK on XCHG, which is implicitly locked."""

    @property
    def name(self) -> str:
        return "superfluous_lock_prefix"

    @property
    def description(self) -> str:
        return "superfluous LOCK prefix"

    def check(self, insn: DecodedInstruction) -> Verdict:
        if insn.iclass is not InstructionClass.XCHG:
            return OPTIMAL

        if insn.has_lock_prefix:
            return flagged("superfluous LOCK prefix: xchg with memory is implicitly locked")

        return OPTIMAL

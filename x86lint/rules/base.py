"""Base classes for the rule engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..errors import ConfigError, DecodeError
from ..schemas import OPTIMAL, DecodedInstruction, Finding, Verdict

if TYPE_CHECKING:
    from ..decoder import Decoder


@dataclass
class RuleContext:
    """Context provided to rules that look past the current instruction.

    Provides access to:
    - The current instruction
    - The bytes following it in the scanned buffer
    - The decoder, for look-ahead decodes
    """

    code: bytes
    instruction: DecodedInstruction
    decoder: "Decoder"

    # Look-ahead decodes, keyed by offset
    _lookahead: dict[int, DecodedInstruction | None] = field(
        default_factory=dict, repr=False
    )

    @property
    def following(self) -> bytes:
        """Bytes after the current instruction."""
        return self.code[self.instruction.end :]

    def decode_at(self, offset: int) -> DecodedInstruction | None:
        """Decode the instruction at offset, or None if it cannot be decoded.

        Args:
            offset: Offset within the scanned buffer.

        Returns:
            The decoded instruction, or None past the end of the buffer or
            on a decode error.
        """
        if offset not in self._lookahead:
            try:
                self._lookahead[offset] = self.decoder.decode(self.code, offset)
            except DecodeError:
                self._lookahead[offset] = None
        return self._lookahead[offset]

    def next_instruction(self) -> DecodedInstruction | None:
        """Decode the instruction immediately after the current one."""
        return self.decode_at(self.instruction.end)


class Rule(ABC):
    """Base class for encoding rules.

    Each rule examines decoded instructions and returns a verdict.
    Rules can examine:
    - Single instructions (most common)
    - A short window of following instructions
    """

    # Rules that are prone to false positives stay registered but off
    enabled_by_default: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this rule."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this rule detects."""
        ...

    @property
    def message(self) -> str:
        """Diagnostic reported with findings of this rule."""
        return self.description

    @abstractmethod
    def check(self, insn: DecodedInstruction) -> Verdict:
        """Check a single instruction.

        Args:
            insn: The decoded instruction.

        Returns:
            OPTIMAL, or a FLAGGED verdict with the reason.
        """
        ...

    def check_sequence(self, ctx: RuleContext) -> Verdict:
        """Check patterns spanning the current and following instructions.

        Override this to look ahead. By default, returns OPTIMAL
        (single-instruction detection only).

        Args:
            ctx: Rule context with access to the following bytes.

        Returns:
            OPTIMAL, or a FLAGGED verdict with the reason.
        """
        return OPTIMAL

    def finding(self, insn: DecodedInstruction, verdict: Verdict) -> Finding:
        return Finding(
            rule_id=self.name,
            offset=insn.offset,
            byte_length=insn.length,
            raw_bytes=insn.raw_bytes,
            message=verdict.reason or self.message,
            text=insn.text,
        )


class RuleRegistry:
    """Registry for encoding rules.

    Manages an ordered collection of rules, which of them are enabled,
    and runs the enabled ones against instructions.
    """

    def __init__(self) -> None:
        self._rules: list[Rule] = []
        self._enabled: dict[str, bool] = {}

    def register(self, rule: Rule, enabled: bool | None = None) -> None:
        """Register a rule.

        Args:
            rule: The rule instance to register.
            enabled: Override the rule's enabled_by_default.
        """
        if rule.name in self._enabled:
            raise ConfigError(f"rule already registered: {rule.name}")
        self._rules.append(rule)
        self._enabled[rule.name] = rule.enabled_by_default if enabled is None else enabled

    def get_rules(self) -> list[Rule]:
        """Get all registered rules, enabled or not."""
        return list(self._rules)

    def get(self, name: str) -> Rule:
        """Look up a rule by name."""
        for rule in self._rules:
            if rule.name == name:
                return rule
        raise ConfigError(f"unknown rule: {name}")

    def is_enabled(self, name: str) -> bool:
        self.get(name)
        return self._enabled[name]

    def enable(self, name: str) -> None:
        self.get(name)
        self._enabled[name] = True

    def disable(self, name: str) -> None:
        self.get(name)
        self._enabled[name] = False

    def enabled_rules(self) -> list[Rule]:
        """Get the enabled rules in registration order."""
        return [r for r in self._rules if self._enabled[r.name]]

    def copy(self) -> "RuleRegistry":
        """Copy the registry so it can be reconfigured independently."""
        other = RuleRegistry()
        for rule in self._rules:
            other.register(rule, enabled=self._enabled[rule.name])
        return other

    def evaluate(self, ctx: RuleContext) -> list[Finding]:
        """Run all enabled rules against the current instruction.

        Args:
            ctx: Context holding the instruction and the bytes after it.

        Returns:
            One finding per flagged verdict, in registration order.
        """
        findings: list[Finding] = []
        insn = ctx.instruction

        for rule in self.enabled_rules():
            # Check single-instruction patterns
            verdict = rule.check(insn)
            if verdict.flagged:
                findings.append(rule.finding(insn, verdict))

            # Check look-ahead patterns
            seq_verdict = rule.check_sequence(ctx)
            if seq_verdict.flagged:
                findings.append(rule.finding(insn, seq_verdict))

        return findings

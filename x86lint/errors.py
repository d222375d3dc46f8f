"""Exceptions raised by x86lint."""

from __future__ import annotations


class X86LintError(Exception):
    """Base class for all x86lint errors."""


class DecodeError(X86LintError):
    """The decoder could not decode an instruction at an offset."""

    def __init__(self, offset: int, reason: str = "undecodable instruction") -> None:
        super().__init__(f"{reason} at offset: {offset}")
        self.offset = offset
        self.reason = reason


class ElfError(X86LintError):
    """The input is not a readable ELF object."""


class SectionNotFoundError(ElfError):
    """A requested section is missing from the ELF object."""

    def __init__(self, name: str) -> None:
        super().__init__(f"section not found: {name}")
        self.name = name


class ConfigError(X86LintError):
    """Invalid configuration (unknown rule, bad output format)."""

"""x86lint - find x86-64 instructions with suboptimal encodings."""

from __future__ import annotations

from .decoder import Decoder, get_decoder
from .errors import ConfigError, DecodeError, ElfError, SectionNotFoundError, X86LintError
from .scanner import scan
from .schemas import DecodedInstruction, Finding, ScanResult, ScanStatus

__version__ = "0.2.0"

__all__ = [
    "__version__",
    "scan",
    "Decoder",
    "get_decoder",
    "DecodedInstruction",
    "Finding",
    "ScanResult",
    "ScanStatus",
    "X86LintError",
    "DecodeError",
    "ElfError",
    "SectionNotFoundError",
    "ConfigError",
]

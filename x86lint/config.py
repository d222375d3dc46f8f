"""Lint configuration from the environment, a .env file and CLI flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .elf import DEFAULT_SECTIONS
from .errors import ConfigError

OUTPUT_FORMATS = ("text", "json", "rich")


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class LintConfig:
    """Configuration for a lint run."""

    # Rule toggles, applied on top of each rule's default
    enable: list[str] = field(default_factory=list)
    disable: list[str] = field(default_factory=list)

    # What to scan
    sections: list[str] = field(default_factory=lambda: list(DEFAULT_SECTIONS))
    executable_sections: bool = False
    raw: bool = False

    output_format: str = "text"

    def __post_init__(self) -> None:
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"unknown output format: {self.output_format} "
                f"(expected one of {', '.join(OUTPUT_FORMATS)})"
            )

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "LintConfig":
        """Build a configuration from X86LINT_* environment variables.

        Variables in a .env file (the working directory's by default) are
        loaded first without overriding ones already set.
        """
        load_dotenv(env_file or Path.cwd() / ".env")

        return cls(
            enable=_split_list(os.environ.get("X86LINT_ENABLE")),
            disable=_split_list(os.environ.get("X86LINT_DISABLE")),
            sections=_split_list(os.environ.get("X86LINT_SECTIONS")) or list(DEFAULT_SECTIONS),
            output_format=os.environ.get("X86LINT_FORMAT", "text"),
        )

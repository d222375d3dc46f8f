"""Executable section extraction from ELF objects.

Only section contents are needed: the scanner works on raw bytes and
reports offsets relative to the start of each section.
"""

from __future__ import annotations

import logging
from pathlib import Path

import lief

from .errors import ElfError, SectionNotFoundError

logger = logging.getLogger(__name__)

# lief reports parse failures on its own logger; ElfError carries them here
lief.logging.disable()


EM_X86_64 = 62
DEFAULT_SECTIONS = (".text",)


def load_elf(path: Path) -> lief.ELF.Binary:
    """Parse an x86-64 ELF object.

    Args:
        path: Path to an object file, shared library or executable.

    Returns:
        The parsed binary.

    Raises:
        ElfError: If the file is missing, not ELF, or not x86-64.
    """
    path = Path(path)
    if not path.is_file():
        raise ElfError(f"file not found: {path}")

    binary = lief.ELF.parse(str(path))
    if binary is None:
        raise ElfError(f"not an ELF object: {path}")

    machine = int(binary.header.machine_type)
    if machine != EM_X86_64:
        raise ElfError(f"not an x86-64 ELF object: {path} (e_machine={machine})")

    return binary


def extract_sections(
    path: Path,
    names: tuple[str, ...] | list[str] = DEFAULT_SECTIONS,
) -> list[tuple[str, bytes]]:
    """Extract the contents of named sections.

    Args:
        path: ELF file to read.
        names: Section names, in the order to return them.

    Returns:
        List of (name, contents).

    Raises:
        ElfError: If the file cannot be parsed.
        SectionNotFoundError: If a named section does not exist.
    """
    binary = load_elf(path)
    sections = {section.name: section for section in binary.sections}

    result: list[tuple[str, bytes]] = []
    for name in names:
        section = sections.get(name)
        if section is None:
            raise SectionNotFoundError(name)
        content = bytes(section.content)
        logger.debug(f"Extracted {name} ({len(content)} bytes) from {path}")
        result.append((name, content))

    return result


def executable_sections(path: Path) -> list[tuple[str, bytes]]:
    """Extract every section flagged executable (SHF_EXECINSTR).

    Sections without file contents (e.g. NOBITS) are skipped.
    """
    binary = load_elf(path)

    result: list[tuple[str, bytes]] = []
    for section in binary.sections:
        if not section.has(lief.ELF.Section.FLAGS.EXECINSTR):
            continue
        content = bytes(section.content)
        if not content:
            continue
        logger.debug(f"Extracted {section.name} ({len(content)} bytes) from {path}")
        result.append((section.name, content))

    return result

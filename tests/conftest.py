"""Pytest configuration and fixtures."""

import struct
from pathlib import Path
from typing import Callable

import pytest

from x86lint.decoder import Decoder, get_decoder
from x86lint.schemas import DecodedInstruction


EM_X86_64 = 62

# One suboptimal encoding per instruction; 11 findings with
# mov_zero disabled.
END_TO_END_CODE = bytes([
    0x90, 0x90,  # nop ; nop
    0x48, 0xB8, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,  # mov rax, 0
    0x05, 0x80, 0x00, 0x00, 0x00,  # add eax, 0x80
    0x40, 0xC9,  # leave
    0x83, 0xFF, 0x00,  # cmp edi, 0
    0x81, 0xC0, 0x00, 0x01, 0x00, 0x00,  # add eax, 0x100
    0x05, 0x01, 0x00, 0x00, 0x00,  # add eax, 1
    0xC1, 0xD0, 0x01,  # rcl eax, 1
    0x83, 0xE0, 0xFF,  # and eax, 0xff
    0x67, 0x0F, 0xC1, 0x18,  # xadd [eax], ebx
    0xF0, 0x87, 0x07,  # lock xchg [rdi], eax
])


def build_elf(text: bytes, machine: int = EM_X86_64, text_name: bytes = b".text") -> bytes:
    """Build a minimal relocatable ELF64 object holding one code section."""
    shstrtab = b"\0" + text_name + b"\0.shstrtab\0"
    text_name_off = 1
    shstrtab_name_off = 1 + len(text_name) + 1

    text_off = 64
    shstrtab_off = text_off + len(text)
    shoff = (shstrtab_off + len(shstrtab) + 7) & ~7

    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + b"\0" * 8
    header = struct.pack(
        "<16sHHIQQQIHHHHHH",
        ident,
        1,  # ET_REL
        machine,
        1,  # EV_CURRENT
        0,  # e_entry
        0,  # e_phoff
        shoff,
        0,  # e_flags
        64,  # e_ehsize
        0,  # e_phentsize
        0,  # e_phnum
        64,  # e_shentsize
        3,  # e_shnum
        2,  # e_shstrndx
    )

    def section(name, shtype, flags, offset, size, align):
        return struct.pack("<IIQQQQIIQQ", name, shtype, flags, 0, offset, size, 0, 0, align, 0)

    sections = (
        section(0, 0, 0, 0, 0, 0)
        + section(text_name_off, 1, 0x6, text_off, len(text), 16)  # PROGBITS, ALLOC|EXECINSTR
        + section(shstrtab_name_off, 3, 0, shstrtab_off, len(shstrtab), 1)  # STRTAB
    )

    body = header + text + shstrtab
    body += b"\0" * (shoff - len(body))
    return body + sections


@pytest.fixture
def decoder() -> Decoder:
    """The process-wide decoder."""
    return get_decoder()


@pytest.fixture
def decode(decoder: Decoder) -> Callable[..., DecodedInstruction]:
    """Decode a single instruction from byte values."""

    def _decode(*values: int) -> DecodedInstruction:
        return decoder.decode(bytes(values), 0)

    return _decode


@pytest.fixture
def end_to_end_code() -> bytes:
    return END_TO_END_CODE


@pytest.fixture
def make_elf(tmp_path: Path) -> Callable[..., Path]:
    """Write a minimal ELF object and return its path."""

    def _make_elf(text: bytes, name: str = "test.o", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_elf(text, **kwargs))
        return path

    return _make_elf


@pytest.fixture
def elf_path(tmp_path: Path) -> Path:
    """Path to an x86-64 object whose .text is the end-to-end buffer."""
    path = tmp_path / "sample.o"
    path.write_bytes(build_elf(END_TO_END_CODE))
    return path


@pytest.fixture
def clean_elf_path(tmp_path: Path) -> Path:
    """Path to an x86-64 object with nothing to flag."""
    path = tmp_path / "clean.o"
    path.write_bytes(build_elf(bytes([0x31, 0xC0, 0xC3])))  # xor eax, eax ; ret
    return path


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep X86LINT_* variables and .env files out of tests."""
    for var in ("X86LINT_ENABLE", "X86LINT_DISABLE", "X86LINT_SECTIONS", "X86LINT_FORMAT"):
        # setenv first so teardown restores the variable even if a .env
        # file loaded during the test set it
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)

"""Tests for instruction classifier helpers."""

import pytest

from x86lint.classifier import (
    classify_iform,
    classify_mnemonic,
    has_lock_prefix,
    is_rex_register,
    sign_extend,
    split_prefixes,
)
from x86lint.schemas import IForm, InstructionClass


class TestClassifyMnemonic:
    """Tests for classify_mnemonic."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("add", InstructionClass.ADD),
            ("cmpxchg16b", InstructionClass.CMPXCHG16B),
            ("jae", InstructionClass.JNB),
            ("jne", InstructionClass.JNZ),
            ("ret", InstructionClass.RET_NEAR),
            ("call", InstructionClass.CALL_NEAR),
            ("NOP", InstructionClass.NOP),
            ("cpuid", InstructionClass.OTHER),
            ("retf", InstructionClass.OTHER),
        ],
    )
    def test_names(self, name, expected):
        assert classify_mnemonic(name) == expected

    def test_mov_control_register(self):
        """Test MOV to/from control registers is split from MOV."""
        assert classify_mnemonic("mov", ("cr0", "rax")) == InstructionClass.MOV_CR
        assert classify_mnemonic("mov", ("rax", "cr3")) == InstructionClass.MOV_CR

    def test_mov_debug_register(self):
        assert classify_mnemonic("mov", ("dr7", "rax")) == InstructionClass.MOV_DR

    def test_movabs_is_mov(self):
        """Test the decoder's name for mov r64, imm64 maps onto MOV."""
        assert classify_mnemonic("movabs") == InstructionClass.MOV
        assert classify_mnemonic("movabs", ("rax", None)) == InstructionClass.MOV

    def test_plain_mov(self):
        assert classify_mnemonic("mov", ("rax", None)) == InstructionClass.MOV
        assert classify_mnemonic("mov") == InstructionClass.MOV


class TestPrefixes:
    """Tests for prefix scanning."""

    def test_no_prefixes(self):
        assert split_prefixes(bytes([0x04, 0x01])) == (b"", 0, 0)

    def test_rex_only(self):
        assert split_prefixes(bytes([0x48, 0x31, 0xC0])) == (b"", 0x48, 1)

    def test_legacy_then_rex(self):
        legacy, rex, pos = split_prefixes(bytes([0x66, 0x41, 0x90]))
        assert legacy == b"\x66"
        assert rex == 0x41
        assert pos == 2

    def test_lock_behind_address_size(self):
        assert has_lock_prefix(bytes([0x67, 0xF0, 0x0F, 0xC1, 0x18]))
        assert not has_lock_prefix(bytes([0x67, 0x0F, 0xC1, 0x18]))


class TestClassifyIForm:
    """Tests for classify_iform."""

    def test_shift_forms(self):
        assert classify_iform(InstructionClass.RCL, bytes([0xD1, 0xD0])) == IForm.SHIFT_BY_ONE
        assert classify_iform(InstructionClass.RCL, bytes([0xC1, 0xD0, 0x01])) == IForm.SHIFT_BY_IMM8
        assert classify_iform(InstructionClass.SHR, bytes([0xD3, 0xE8])) == IForm.SHIFT_BY_CL

    def test_shift_form_with_rex(self):
        assert classify_iform(InstructionClass.ROL, bytes([0x48, 0xC1, 0xC0, 0x01])) == IForm.SHIFT_BY_IMM8

    def test_non_shift_is_default(self):
        assert classify_iform(InstructionClass.ADD, bytes([0xC1])) == IForm.DEFAULT


class TestRegisters:
    """Tests for register helpers."""

    @pytest.mark.parametrize("reg", ["r8", "r9d", "r15w", "r12b", "spl", "dil", "rax", "rsp"])
    def test_rex_registers(self, reg):
        assert is_rex_register(reg)

    @pytest.mark.parametrize("reg", ["al", "ah", "eax", "ax", "esp", "fs", None])
    def test_legacy_registers(self, reg):
        assert not is_rex_register(reg)

    def test_sign_extend(self):
        assert sign_extend(0xFF, 8) == -1
        assert sign_extend(0x7F, 8) == 127
        assert sign_extend(0x80, 32) == 128
        assert sign_extend(0xFFFFFF80, 32) == -128
        assert sign_extend(0x1234, 0) == 0

"""Instruction classifier - maps decoder output onto the closed data model.

Splits an encoded instruction into the pieces the rules care about:
- Instruction class (from the decoder's mnemonic)
- Encoding variant (from the primary opcode byte)
- Legacy and REX prefixes
- Register families
"""

from __future__ import annotations

from .schemas import IForm, InstructionClass


# Legacy prefixes: lock/rep, segment overrides, operand and address size
LOCK_PREFIX = 0xF0
LEGACY_PREFIXES = frozenset({
    0xF0, 0xF2, 0xF3,
    0x26, 0x2E, 0x36, 0x3E, 0x64, 0x65,
    0x66, 0x67,
})

# Group 2 shift/rotate opcodes
SHIFT_OPCODE_IFORMS = {
    0xC0: IForm.SHIFT_BY_IMM8,
    0xC1: IForm.SHIFT_BY_IMM8,
    0xD0: IForm.SHIFT_BY_ONE,
    0xD1: IForm.SHIFT_BY_ONE,
    0xD2: IForm.SHIFT_BY_CL,
    0xD3: IForm.SHIFT_BY_CL,
}

SHIFT_CLASSES = frozenset({
    InstructionClass.RCL,
    InstructionClass.RCR,
    InstructionClass.ROL,
    InstructionClass.ROR,
    InstructionClass.SAL,
    InstructionClass.SAR,
    InstructionClass.SHL,
    InstructionClass.SHR,
})

# Registers only reachable through a REX prefix, plus the 64-bit legacy
# registers which need REX.W outside default-64-bit instructions.
_EXTENDED_GPRS = [f"r{n}" for n in range(8, 16)]

REX_REGISTERS = frozenset(
    [f"{reg}{suffix}" for reg in _EXTENDED_GPRS for suffix in ("b", "w", "d", "")]
    + ["spl", "bpl", "sil", "dil"]
    + ["rax", "rcx", "rdx", "rbx", "rsp", "rbp", "rsi", "rdi"]
)

# Accumulator register for each immediate width with a short implicit form
ACCUMULATORS = {
    8: frozenset({"al"}),
    16: frozenset({"ax"}),
    32: frozenset({"eax", "rax"}),
}


def classify_mnemonic(name: str, registers: tuple[str | None, ...] = ()) -> InstructionClass:
    """Map a decoder mnemonic onto an InstructionClass.

    Args:
        name: Instruction name as spelled by the decoder (no prefixes).
        registers: Register operands, used to split MOV to/from control and
            debug registers out of plain MOV.

    Returns:
        The matching class, or InstructionClass.OTHER.
    """
    name = name.strip().lower()
    # mov r64, imm64
    if name == "movabs":
        return InstructionClass.MOV
    if name == "mov":
        for reg in registers:
            if reg is None:
                continue
            if reg.startswith("cr"):
                return InstructionClass.MOV_CR
            if reg.startswith("dr"):
                return InstructionClass.MOV_DR
        return InstructionClass.MOV

    try:
        return InstructionClass(name)
    except ValueError:
        return InstructionClass.OTHER


def split_prefixes(raw: bytes) -> tuple[bytes, int, int]:
    """Split an encoding into legacy prefixes, REX byte and opcode position.

    REX is only recognized directly after the legacy prefixes, in front
    of the opcode.

    Returns:
        (legacy prefixes, REX byte or 0, index of the first opcode byte)
    """
    pos = 0
    while pos < len(raw) and raw[pos] in LEGACY_PREFIXES:
        pos += 1
    legacy = bytes(raw[:pos])

    rex = 0
    if pos < len(raw) and (raw[pos] & 0xF0) == 0x40:
        rex = raw[pos]
        pos += 1

    return legacy, rex, pos


def has_lock_prefix(raw: bytes) -> bool:
    legacy, _, _ = split_prefixes(raw)
    return LOCK_PREFIX in legacy


def classify_iform(iclass: InstructionClass, raw: bytes) -> IForm:
    """Determine the encoding variant of an instruction."""
    if iclass not in SHIFT_CLASSES:
        return IForm.DEFAULT

    _, _, pos = split_prefixes(raw)
    if pos >= len(raw):
        return IForm.DEFAULT
    return SHIFT_OPCODE_IFORMS.get(raw[pos], IForm.DEFAULT)


def is_rex_register(reg: str | None) -> bool:
    """Check whether naming this register requires a REX prefix."""
    return reg is not None and reg in REX_REGISTERS


def sign_extend(value: int, bits: int) -> int:
    """Interpret the low `bits` bits of value as a two's complement number."""
    if bits <= 0:
        return 0
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value

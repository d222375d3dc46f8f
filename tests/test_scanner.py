"""Tests for the sequential scanner."""

from x86lint.rules import get_registry
from x86lint.scanner import scan
from x86lint.schemas import ScanStatus


FRAGMENT = bytes([
    0x90, 0x90,  # nop ; nop
    0x48, 0xB8, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,  # mov rax, 0
    0x05, 0x80, 0x00, 0x00, 0x00,  # add eax, 0x80
    0x40, 0xC9,  # leave
    0x83, 0xFF, 0x00,  # cmp edi, 0
])


def rule_ids(result):
    return [(f.rule_id, f.offset) for f in result.findings]


class TestScan:
    """Tests for scan()."""

    def test_end_to_end(self, end_to_end_code):
        """Test the full buffer yields one finding per instruction."""
        result = scan(end_to_end_code)

        assert result.completed
        assert result.count == 11
        assert result.instruction_count == 11
        assert result.byte_length == len(end_to_end_code)
        assert rule_ids(result) == [
            ("suboptimal_nops", 0),
            ("oversized_immediate", 2),
            ("oversized_add128", 12),
            ("unneeded_rex", 17),
            ("cmp_zero", 19),
            ("implicit_register", 22),
            ("oversized_immediate", 28),
            ("implicit_immediate", 33),
            ("and_strength_reduce", 36),
            ("missing_lock_prefix", 39),
            ("superfluous_lock_prefix", 43),
        ]

    def test_fragment(self):
        """Test the short fragment, including the mov rax, 0 imm64 finding."""
        result = scan(FRAGMENT)

        assert result.count == 5
        assert rule_ids(result) == [
            ("suboptimal_nops", 0),
            ("oversized_immediate", 2),
            ("oversized_add128", 12),
            ("unneeded_rex", 17),
            ("cmp_zero", 19),
        ]

    def test_instruction_spans_cover_buffer(self, decoder, end_to_end_code):
        """Test decoded spans are contiguous, disjoint and sum to the buffer length."""
        spans = []
        offset = 0
        while offset < len(end_to_end_code):
            insn = decoder.decode(end_to_end_code, offset)
            spans.append((insn.offset, insn.end))
            offset += insn.length

        assert spans[0][0] == 0
        assert spans[-1][1] == len(end_to_end_code)
        for (_, prev_end), (start, _) in zip(spans, spans[1:]):
            assert start == prev_end
        assert sum(end - start for start, end in spans) == len(end_to_end_code)
        assert len(spans) == scan(end_to_end_code).instruction_count

    def test_finding_spans_are_instruction_spans(self, decoder, end_to_end_code):
        """Test every finding covers exactly one decoded instruction."""
        starts = set()
        offset = 0
        while offset < len(end_to_end_code):
            insn = decoder.decode(end_to_end_code, offset)
            starts.add((insn.offset, insn.length))
            offset = insn.end

        for finding in scan(end_to_end_code).findings:
            assert (finding.offset, finding.byte_length) in starts

    def test_findings_in_offset_order(self, end_to_end_code):
        offsets = [f.offset for f in scan(end_to_end_code).findings]
        assert offsets == sorted(offsets)

    def test_finding_bytes_match_buffer(self, end_to_end_code):
        for finding in scan(end_to_end_code).findings:
            end = finding.offset + finding.byte_length
            assert end_to_end_code[finding.offset:end] == finding.raw_bytes

    def test_deterministic(self, end_to_end_code):
        assert scan(end_to_end_code) == scan(end_to_end_code)

    def test_empty_buffer(self):
        result = scan(b"")

        assert result.completed
        assert result.count == 0
        assert result.instruction_count == 0

    def test_clean_code(self):
        result = scan(bytes([0x31, 0xC0, 0xC3]))  # xor eax, eax ; ret

        assert result.completed
        assert result.count == 0
        assert result.instruction_count == 2

    def test_accepts_bytearray(self):
        assert scan(bytearray([0x83, 0xFF, 0x00])).count == 1

    def test_nop_run(self):
        """Test each mergeable pair in a run is reported once."""
        result = scan(bytes([0x90, 0x90, 0x90]))

        assert rule_ids(result) == [("suboptimal_nops", 0), ("suboptimal_nops", 1)]

    def test_maximal_nop_run(self):
        nop9 = [0x66, 0x0F, 0x1F, 0x84, 0x00, 0x00, 0x00, 0x00, 0x00]
        result = scan(bytes(nop9 * 3))

        assert result.count == 0


class TestScanDecodeFailure:
    """Tests for scans that stop at undecodable bytes."""

    def test_truncated_trailing_instruction(self):
        code = bytes([0x83, 0xFF, 0x00, 0x81, 0xC0])  # cmp edi, 0 ; truncated add

        result = scan(code)

        assert result.status == ScanStatus.DECODE_FAILED
        assert not result.completed
        assert result.failed_offset == 3
        assert result.count is None
        assert result.instruction_count == 1
        assert rule_ids(result) == [("cmp_zero", 0)]

    def test_no_findings_past_failure(self):
        code = bytes([0x81, 0xC0, 0x01, 0x00])  # truncated add eax, 1

        result = scan(code)

        assert result.failed_offset == 0
        assert result.findings == []

    def test_nop_before_truncation(self):
        """Test an undecodable look-ahead does not flag the NOP before it."""
        result = scan(bytes([0x90, 0x0F]))

        assert result.failed_offset == 1
        assert result.findings == []

    def test_to_dict(self):
        data = scan(bytes([0x90, 0x0F])).to_dict()

        assert data["status"] == "decode_failed"
        assert data["summary"]["failed_offset"] == 1
        assert data["summary"]["finding_count"] is None


class TestScanRegistry:
    """Tests for scanning with a configured registry."""

    def test_enable_mov_zero(self):
        registry = get_registry().copy()
        registry.enable("mov_zero")

        result = scan(bytes([0xB8, 0x00, 0x00, 0x00, 0x00]), registry=registry)  # mov eax, 0

        assert rule_ids(result) == [("mov_zero", 0)]

    def test_mov_zero_off_by_default(self):
        assert scan(bytes([0xB8, 0x00, 0x00, 0x00, 0x00])).count == 0

    def test_disable_rule(self, end_to_end_code):
        registry = get_registry().copy()
        registry.disable("suboptimal_nops")
        registry.disable("cmp_zero")

        result = scan(end_to_end_code, registry=registry)

        assert result.count == 9
        assert "cmp_zero" not in {f.rule_id for f in result.findings}

    def test_multiple_findings_one_instruction(self):
        """Test every rule reports, in registration order."""
        # add rax, 1 with REX.W, ModRM accumulator and imm32
        result = scan(bytes([0x48, 0x81, 0xC0, 0x01, 0x00, 0x00, 0x00]))

        assert rule_ids(result) == [
            ("oversized_immediate", 0),
            ("implicit_register", 0),
        ]

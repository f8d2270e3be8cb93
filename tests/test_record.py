"""
Tests for program records, the tape header and the hex text format.
"""

import logging

import pytest

from mpftape import HeaderFields, ProgramRecord, parse_line, parse_lines, MAX_DATA_SIZE


class TestHeaderFields:
    """Test the 7-byte tape header."""

    def test_encode_little_endian(self):
        header = HeaderFields(0x1234, 0x1800, 0x1801, 0xFD)
        assert header.encode() == bytes([0x34, 0x12, 0x00, 0x18, 0x01, 0x18, 0xFD])

    def test_decode(self):
        header = HeaderFields.decode(bytes([0x34, 0x12, 0x00, 0x18, 0x01, 0x18, 0xFD]))
        assert header.filename == 0x1234
        assert header.start_addr == 0x1800
        assert header.end_addr == 0x1801
        assert header.checksum == 0xFD
        assert header.data_size == 2

    def test_decode_wrong_length(self):
        with pytest.raises(ValueError):
            HeaderFields.decode(bytes(6))

    def test_data_size_wraps(self):
        """Addresses are 16-bit; the end may wrap past 0xffff."""
        assert HeaderFields(0, 0xFFFF, 0x0000, 0).data_size == 2
        assert HeaderFields(0, 0xF000, 0x00FF, 0).data_size == 0x1100

    def test_data_size_can_be_out_of_range(self):
        """The header is what was read from tape; it is not validated here."""
        assert HeaderFields(0, 0x1800, 0x17FF, 0).data_size == 0x10000
        assert HeaderFields(0, 0x0000, 0xFFFF, 0).data_size == 0x10000


class TestProgramRecord:
    """Test record fields and derived values."""

    def test_checksum(self):
        record = ProgramRecord(0, 0x8000, b"\x01\x02")
        assert record.checksum == 0xFD
        assert (sum(record.payload) + record.checksum) % 256 == 0

    def test_checksum_zero_sum(self):
        record = ProgramRecord(0, 0x8000, b"\x80\x80")
        assert record.checksum == 0x00

    def test_end_addr(self):
        assert ProgramRecord(0, 0x1800, bytes(16)).end_addr == 0x180F
        # 16-bit wrap
        assert ProgramRecord(0, 0xFFFF, bytes(2)).end_addr == 0x0000

    def test_header(self):
        header = ProgramRecord(0xABCD, 0x1800, b"\x01\x02\x03").header()
        assert header.filename == 0xABCD
        assert header.start_addr == 0x1800
        assert header.end_addr == 0x1802
        assert header.checksum == (-6) & 0xFF

    def test_to_line(self):
        record = ProgramRecord(0xABCD, 0x1800, b"\x3e\xff")
        assert record.to_line() == "abcd/1800:3eff\n"

    def test_equality(self):
        assert ProgramRecord(1, 2, b"\x03") == ProgramRecord(1, 2, b"\x03")
        assert ProgramRecord(1, 2, b"\x03") != ProgramRecord(1, 2, b"\x04")

    def test_limits(self):
        ProgramRecord(0xFFFF, 0xFFFF, bytes(MAX_DATA_SIZE))

        with pytest.raises(ValueError):
            ProgramRecord(0x10000, 0, b"\x00")
        with pytest.raises(ValueError):
            ProgramRecord(0, -1, b"\x00")
        with pytest.raises(ValueError):
            ProgramRecord(0, 0, b"")
        with pytest.raises(ValueError):
            ProgramRecord(0, 0, bytes(MAX_DATA_SIZE + 1))


class TestParseLine:
    """Test the FFFF/AAAA:hexdata line format."""

    def test_parse(self):
        record = parse_line("0000/8000:0102\n")
        assert record == ProgramRecord(0x0000, 0x8000, b"\x01\x02")

    def test_parse_uppercase(self):
        record = parse_line("ABCD/1800:3EFF\n")
        assert record == ProgramRecord(0xABCD, 0x1800, b"\x3e\xff")
        assert record.to_line() == "abcd/1800:3eff\n"

    def test_missing_final_newline(self):
        assert parse_line("0000/8000:0102") == ProgramRecord(0, 0x8000, b"\x01\x02")

    @pytest.mark.parametrize("line, reason", [
        ("0000/8000:\n", "too short"),
        ("\n", "too short"),
        ("0000/8000:012\n", "EVEN"),
        ("0000-8000:0102\n", "must be '/'"),
        ("0000/8000;0102\n", "must be ':'"),
        ("0000/8000:01g2\n", "must be a hex digit"),
        ("00x0/8000:0102\n", "must be a hex digit"),
    ])
    def test_malformed(self, caplog, line, reason):
        assert parse_line(line, lineno=7) is None
        assert "line 7" in caplog.text
        assert reason in caplog.text
        assert caplog.records[-1].levelno == logging.WARNING

    def test_too_long(self, caplog):
        line = "0000/8000:" + "00" * (MAX_DATA_SIZE + 1) + "\n"
        assert parse_line(line) is None
        assert "too long" in caplog.text

    def test_max_size(self):
        line = "0000/8000:" + "00" * MAX_DATA_SIZE + "\n"
        assert len(parse_line(line).payload) == MAX_DATA_SIZE


class TestParseLines:
    def test_skips_malformed(self, caplog):
        lines = [
            "0001/1800:00\n",
            "garbage\n",
            "0002/1900:0102\n",
        ]
        records = list(parse_lines(lines))

        assert [r.filename for r in records] == [1, 2]
        assert "line 2" in caplog.text

"""
MPF-1 program records: tape header layout and the hex text format.
"""

import logging
import struct
from typing import Iterable, Iterator, Optional

from . import HEADER_SIZE, MAX_DATA_SIZE

_logger = logging.getLogger(__name__)

# Text line layout: FFFF/AAAA:hexdata\n
FILENAME_SLICE = slice(0, 4)
SLASH_INDEX = 4
ADDRESS_SLICE = slice(5, 9)
COLON_INDEX = 9
DATA_OFFSET = 10
MIN_LINE_LENGTH = DATA_OFFSET + 2 + 1  # at least one data byte plus terminator
MAX_LINE_LENGTH = DATA_OFFSET + MAX_DATA_SIZE * 2 + 1

HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class HeaderFields:
    """
    The 7-byte header that precedes the data on tape.

    Header structure (little-endian):
    - Filename: 16 bits
    - Start address: 16 bits
    - End address: 16 bits - address of the last data byte
    - Checksum: 8 bits
    """

    FORMAT = "<HHHB"

    def __init__(self, filename: int, start_addr: int, end_addr: int, checksum: int):
        self.filename = filename
        self.start_addr = start_addr
        self.end_addr = end_addr
        self.checksum = checksum

    @property
    def data_size(self) -> int:
        """Number of data bytes announced by the header (may exceed capacity)."""
        # 16-bit address arithmetic, so a program may wrap past 0xffff
        return ((self.end_addr - self.start_addr) & 0xFFFF) + 1

    def encode(self) -> bytes:
        return struct.pack(
            self.FORMAT,
            self.filename,
            self.start_addr,
            self.end_addr,
            self.checksum,
        )

    @classmethod
    def decode(cls, data: bytes) -> "HeaderFields":
        """
        Unpack a header from the 7 bytes read from tape.

        Args:
            data: exactly HEADER_SIZE bytes

        Returns:
            HeaderFields
        """
        if len(data) != HEADER_SIZE:
            raise ValueError(f"header must be {HEADER_SIZE} bytes, got {len(data)}")
        return cls(*struct.unpack(cls.FORMAT, bytes(data)))

    def __repr__(self) -> str:
        return (
            f"HeaderFields(filename={self.filename:04x}, "
            f"start={self.start_addr:04x}, end={self.end_addr:04x}, "
            f"checksum={self.checksum:02x})"
        )


class ProgramRecord:
    """
    A program as stored on tape: a 16-bit 'filename', a load address and
    the data bytes.
    """

    def __init__(self, filename: int, start_addr: int, payload: bytes):
        """
        Initialize a record.

        Args:
            filename: Tape filename (0 to 65535)
            start_addr: Load address of the first byte (0 to 65535)
            payload: Program data, 1 to MAX_DATA_SIZE bytes
        """
        if not 0 <= filename <= 0xFFFF:
            raise ValueError("filename must be 16-bit unsigned")
        if not 0 <= start_addr <= 0xFFFF:
            raise ValueError("start_addr must be 16-bit unsigned")
        if not 1 <= len(payload) <= MAX_DATA_SIZE:
            raise ValueError(f"payload must be 1 to {MAX_DATA_SIZE} bytes, got {len(payload)}")

        self.filename = filename
        self.start_addr = start_addr
        self.payload = bytes(payload)

    @property
    def end_addr(self) -> int:
        # 16-bit address arithmetic, as the monitor does it
        return (self.start_addr + len(self.payload) - 1) & 0xFFFF

    @property
    def checksum(self) -> int:
        """Checksum byte: sum(payload) + checksum == 0 (mod 256)."""
        return -sum(self.payload) & 0xFF

    def header(self) -> HeaderFields:
        return HeaderFields(self.filename, self.start_addr, self.end_addr, self.checksum)

    def to_line(self) -> str:
        return f"{self.filename:04x}/{self.start_addr:04x}:{self.payload.hex()}\n"

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProgramRecord):
            return NotImplemented
        return (
            self.filename == other.filename
            and self.start_addr == other.start_addr
            and self.payload == other.payload
        )

    def __repr__(self) -> str:
        return (
            f"ProgramRecord(filename={self.filename:04x}, "
            f"start={self.start_addr:04x}, size={len(self.payload)})"
        )


def _check_line(line: str) -> Optional[str]:
    """Return the reason a line is malformed, or None if it is fine."""
    length = len(line)

    if length > MAX_LINE_LENGTH:
        return "is too long"
    if length < MIN_LINE_LENGTH:
        return "is too short"
    if length % 2 == 0:
        return "has an EVEN length (including \\n)"

    for pos, char in enumerate(line):
        if pos == SLASH_INDEX:
            if char != "/":
                return f"has an illegal character at position {pos + 1}, must be '/'"
        elif pos == COLON_INDEX:
            if char != ":":
                return f"has an illegal character at position {pos + 1}, must be ':'"
        elif pos == length - 1:
            if char != "\n":
                return "has an illegal last character, must be '\\n'"
        elif char not in HEX_DIGITS:
            return f"has an illegal character at position {pos + 1}, must be a hex digit"

    return None


def parse_line(line: str, lineno: int = 1) -> Optional[ProgramRecord]:
    """
    Parse one line of the text format.

    Format is FFFF/AAAA:zzzz...\\n where FFFF is the filename, AAAA the
    load address and zzzz an even number of hex digits holding the data.
    A final line without its newline is accepted.

    Args:
        line: Line of text including its terminator
        lineno: Line number used in diagnostics

    Returns:
        ProgramRecord, or None if the line is malformed (a warning is logged)
    """
    if not line.endswith("\n"):
        line += "\n"

    reason = _check_line(line)
    if reason is not None:
        _logger.warning(f"line {lineno} of input {reason}, skipping")
        return None

    filename = int(line[FILENAME_SLICE], 16)
    start_addr = int(line[ADDRESS_SLICE], 16)
    payload = bytes.fromhex(line[DATA_OFFSET:-1])

    # line validation guarantees at least one whole data byte
    assert payload and len(payload) * 2 == len(line) - DATA_OFFSET - 1

    _logger.info(f"found filename={filename:04x}, first_addr={start_addr:04x}")
    return ProgramRecord(filename, start_addr, payload)


def parse_lines(lines: Iterable[str]) -> Iterator[ProgramRecord]:
    """Yield a record for every well-formed line, skipping the others."""
    for lineno, line in enumerate(lines, start=1):
        record = parse_line(line, lineno)
        if record is not None:
            yield record

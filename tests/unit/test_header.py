"""
Unit tests for the wire header.
"""

import struct

import pytest

from cix.protocol import (
    Command,
    Header,
    FILENAME_SIZE,
    HEADER_SIZE,
    MAX_NBYTES,
    bounded_copy,
    command_name,
)


class TestLayout:
    """Tests for the fixed byte layout."""

    def test_sizes(self):
        assert FILENAME_SIZE == 256
        assert HEADER_SIZE == 264
        assert len(Header().to_bytes()) == HEADER_SIZE

    def test_command_values(self):
        """Command values are part of the wire contract."""
        assert [c.name for c in Command] == [
            "ERROR", "EXIT", "GET", "HELP", "LS", "PUT",
            "RM", "FILEOUT", "LSOUT", "ACK", "NAK",
        ]
        assert Command.ERROR == 0
        assert Command.NAK == 10

    def test_field_positions(self):
        """nbytes big-endian first, then command, pad, filename."""
        raw = Header(Command.PUT, 0x01020304, "f.txt").to_bytes()

        assert raw[0:4] == b"\x01\x02\x03\x04"
        assert raw[4] == Command.PUT
        assert raw[5:8] == b"\0\0\0"
        assert raw[8:13] == b"f.txt"

    def test_unused_bytes_are_zero(self):
        """Padding and the filename tail never carry garbage."""
        raw = Header(Command.GET, 7, "abc").to_bytes()
        assert raw[5:8] == b"\0\0\0"
        assert set(raw[11:]) == {0}

    def test_decode(self):
        raw = struct.pack("!IB3x256s", 42, Command.FILEOUT, b"")
        header = Header.from_bytes(raw)

        assert header.command is Command.FILEOUT
        assert header.nbytes == 42
        assert header.filename == ""

    def test_decode_ignores_pad_content(self):
        raw = bytearray(Header(Command.RM, 0, "x").to_bytes())
        raw[5:8] = b"\xff\xff\xff"
        assert Header.from_bytes(bytes(raw)) == Header(Command.RM, 0, "x")

    def test_decode_wrong_size(self):
        with pytest.raises(ValueError):
            Header.from_bytes(b"\0" * (HEADER_SIZE - 1))

    def test_nbytes_range(self):
        Header(Command.FILEOUT, MAX_NBYTES).to_bytes()
        with pytest.raises(ValueError):
            Header(Command.FILEOUT, MAX_NBYTES + 1).to_bytes()

    def test_unknown_command_survives_decode(self):
        raw = Header(99, 0, "").to_bytes()
        header = Header.from_bytes(raw)

        assert header.command == 99
        assert not isinstance(header.command, Command)
        assert command_name(header.command) == "UNKNOWN(99)"


class TestFilenameTruncation:
    """Tests for the bounded filename buffer."""

    def test_short_name_untouched(self):
        assert bounded_copy("notes.txt") == (b"notes.txt", False)

    def test_exact_fit(self):
        name = "n" * (FILENAME_SIZE - 1)
        copied, truncated = bounded_copy(name)
        assert copied == name.encode()
        assert truncated is False

    def test_one_byte_over(self):
        copied, truncated = bounded_copy("n" * FILENAME_SIZE)
        assert len(copied) == FILENAME_SIZE - 1
        assert truncated is True

    def test_capacity_plus_ten_on_the_wire(self):
        """A 266-character name arrives as its first 255 characters."""
        name = "".join(chr(ord("a") + i % 26) for i in range(FILENAME_SIZE + 10))
        header = Header(Command.GET, 0, name)

        assert header.truncated is True
        decoded = Header.from_bytes(header.to_bytes())
        assert decoded.filename == name[:255]
        assert header.wire_filename == name[:255]

    def test_terminator_always_present(self):
        raw = Header(Command.GET, 0, "z" * 1000).to_bytes()
        assert raw[-1] == 0

    def test_embedded_nul_stops_copy(self):
        copied, truncated = bounded_copy("abc\0def")
        assert copied == b"abc"
        assert truncated is True

    def test_non_ascii_name(self):
        header = Header(Command.PUT, 3, "résumé.txt")
        assert Header.from_bytes(header.to_bytes()).filename == "résumé.txt"


class TestMutation:
    """Headers are reused in place by handlers."""

    def test_clear_filename(self):
        header = Header(Command.GET, 0, "secret.txt")
        header.command = Command.FILEOUT
        header.nbytes = 5
        header.clear_filename()

        assert Header.from_bytes(header.to_bytes()) == Header(Command.FILEOUT, 5, "")

    def test_str(self):
        assert str(Header(Command.GET, 0, "a.txt")) == '{GET, 0, "a.txt"}'
        assert str(Header(Command.NAK, 2)) == '{NAK, 2, ""}'

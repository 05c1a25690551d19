"""
=============================================================================
CIX WIRE HEADER
=============================================================================

Every exchange between cix and cixd starts with one fixed-size header.
If the header announces a payload, exactly `nbytes` raw bytes follow it
on the same stream before the next header.

=============================================================================
BYTE LAYOUT (264 bytes, network byte order)
=============================================================================

    offset  size  field
    ──────  ────  ─────────────────────────────────────────────────────
       0      4   nbytes     unsigned 32-bit payload length / errno
       4      1   command    Command value (0..10)
       5      3   padding    always zero on the wire, ignored on read
       8    256   filename   NUL terminated, zero padded

    ┌──────────┬─────┬───────┬──────────────────────────────────────┐
    │  nbytes  │ cmd │  pad  │ filename .......................\0\0 │
    └──────────┴─────┴───────┴──────────────────────────────────────┘

FILENAME TRUNCATION:
────────────────────
The filename buffer holds at most FILENAME_SIZE - 1 = 255 bytes of the
name followed by a terminator. Longer names are cut on the wire without
notice to the peer. bounded_copy() reports the cut to the caller so the
sending side can see it happened.

=============================================================================
"""

import os
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple, Union


FILENAME_SIZE = 256
HEADER_FORMAT = f"!IB3x{FILENAME_SIZE}s"  # nbytes, command, pad, filename
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
MAX_NBYTES = 0xFFFFFFFF


class Command(IntEnum):
    """Command tags carried in the header."""
    ERROR = 0
    EXIT = 1
    GET = 2
    HELP = 3
    LS = 4
    PUT = 5
    RM = 6
    FILEOUT = 7
    LSOUT = 8
    ACK = 9
    NAK = 10


def command_name(value: int) -> str:
    """Name of a command value, including values outside the enum."""
    try:
        return Command(value).name
    except ValueError:
        return f"UNKNOWN({value})"


def bounded_copy(name: Union[str, bytes], capacity: int = FILENAME_SIZE) -> Tuple[bytes, bool]:
    """
    Copy a filename into at most `capacity - 1` bytes.

    The name is encoded with the filesystem encoding and stops at the first
    embedded NUL, the same place a C reader would stop.

    Returns:
        (copied bytes, True if anything was dropped)
    """
    raw = os.fsencode(name)
    cut = raw.find(b"\0")
    if cut != -1:
        raw = raw[:cut]
        dropped_nul = True
    else:
        dropped_nul = False

    limit = capacity - 1
    if len(raw) > limit:
        return raw[:limit], True
    return raw, dropped_nul


@dataclass
class Header:
    """
    One protocol header.

    `command` is normally a Command, but a header decoded from the wire may
    carry a value the enum does not know; it is then left as a plain int so
    the dispatcher can log and skip it.

    Headers are mutable: a handler flips command/nbytes and clears the
    filename on the header it received before sending it back.
    """
    command: int = Command.ERROR
    nbytes: int = 0
    filename: str = ""

    @property
    def truncated(self) -> bool:
        """True if the filename does not fit the wire buffer."""
        return bounded_copy(self.filename)[1]

    @property
    def wire_filename(self) -> str:
        """The filename as the peer will see it."""
        return os.fsdecode(bounded_copy(self.filename)[0])

    def clear_filename(self) -> "Header":
        self.filename = ""
        return self

    def to_bytes(self) -> bytes:
        if not 0 <= self.nbytes <= MAX_NBYTES:
            raise ValueError(f"nbytes out of range: {self.nbytes}")
        name, _ = bounded_copy(self.filename)
        # struct zero-fills both the pad bytes and the unused filename tail
        return struct.pack(HEADER_FORMAT, self.nbytes, int(self.command), name)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Header":
        if len(raw) != HEADER_SIZE:
            raise ValueError(f"header must be {HEADER_SIZE} bytes, got {len(raw)}")

        nbytes, value, name = struct.unpack(HEADER_FORMAT, raw)
        try:
            command: int = Command(value)
        except ValueError:
            command = value

        name = name.split(b"\0", 1)[0]
        return cls(command=command, nbytes=nbytes, filename=os.fsdecode(name))

    def __str__(self) -> str:
        return f'{{{command_name(self.command)}, {self.nbytes}, "{self.wire_filename}"}}'

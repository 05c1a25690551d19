"""
=============================================================================
FRAMED CHANNEL
=============================================================================

A Channel wraps one connected TCP socket and gives it exact-size reads
and writes.

=============================================================================
WHY EXACT READS?
=============================================================================

TCP is a byte stream, not a message stream. A 264-byte header might
arrive as one recv() of 264 bytes, or as 200 + 64, or as 264 separate
bytes. Every cix frame has a size known in advance (HEADER_SIZE, then
header.nbytes), so the reader loops until it has exactly that many:

    recv_exact(264)
        recv() → 200 bytes     have 200 / 264
        recv() →  64 bytes     have 264 / 264  ✓

A peer that closes the stream before the count is reached is an error,
not end-of-stream. No partial frame is ever handed upward.

=============================================================================
"""

import logging
import socket
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..protocol import Header, HEADER_SIZE


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """
    A send or receive could not move the exact byte count.

    Always fatal to the session or connection that raised it.

    Attributes:
        received: Bytes that did arrive before a short read failed.
    """

    def __init__(self, message: str, received: int = 0):
        super().__init__(message)
        self.received = received


class ChannelState(Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Channel:
    """
    A connected socket with exact-byte framing.

    Attributes:
        socket: The connected socket.
        address: Peer (ip, port) tuple.
        id: Short identifier used in log lines.
        bytes_sent / bytes_received: Running totals.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ChannelState = ChannelState.OPEN
    bytes_sent: int = 0
    bytes_received: int = 0

    buffer_size: int = 64 * 1024

    def __post_init__(self):
        # Blocking I/O, no timeout: a hung peer holds the channel
        self.socket.setblocking(True)

    @classmethod
    def connect(cls, host: str, port: int, timeout: Optional[float] = None) -> "Channel":
        """
        Open a client channel to host:port.

        Raises:
            TransportError: Name resolution or connect failed.
        """
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise TransportError(f"connect to {host} port {port} failed: {e}") from e
        return cls(socket=sock, address=sock.getpeername()[:2])

    @property
    def is_closed(self) -> bool:
        return self.state == ChannelState.CLOSED

    # =========================================================================
    # EXACT I/O
    # =========================================================================

    def send_exact(self, data: bytes) -> None:
        """
        Write every byte of `data`.

        sendall() already loops over short writes; what is left for us is
        turning socket errors into TransportError.
        """
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise TransportError(f"send of {len(data)} bytes failed: {e}") from e
        self.bytes_sent += len(data)

    def recv_exact(self, n: int) -> bytes:
        """
        Read exactly `n` bytes.

        Raises:
            TransportError: The peer closed the stream or the socket failed
                            before `n` bytes arrived.
        """
        # Grows with what arrives; a large nbytes costs nothing until sent
        buf = bytearray()
        while len(buf) < n:
            got = len(buf)
            try:
                chunk = self.socket.recv(min(n - got, self.buffer_size))
            except OSError as e:
                raise TransportError(f"recv failed after {got} of {n} bytes: {e}", got) from e
            if not chunk:
                raise TransportError(f"connection closed after {got} of {n} bytes", got)
            buf += chunk
        self.bytes_received += n
        return bytes(buf)

    # =========================================================================
    # HEADERS
    # =========================================================================

    def send_header(self, header: Header, payload: bytes = b"") -> None:
        """Send a header and, if given, the payload it announces."""
        self.send_exact(header.to_bytes())
        if payload:
            self.send_exact(payload)

    def recv_header(self) -> Header:
        return Header.from_bytes(self.recv_exact(HEADER_SIZE))

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """Close the socket. Safe to call more than once."""
        if self.state == ChannelState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ChannelState.CLOSED
        logger.debug(
            f"[{self.id}] Channel closed, sent {self.bytes_sent} bytes, "
            f"received {self.bytes_received} bytes"
        )

    def __str__(self) -> str:
        return f"{self.address[0]}:{self.address[1]}"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

"""
Unit tests for exact-byte framing.
"""

import threading
import time

import pytest

from cix.core.channel import Channel, ChannelState, TransportError
from cix.protocol import Command, Header, HEADER_SIZE

from conftest import channel_pair


class RecordingSocket:
    """Serves canned recv() results and records the sizes asked for."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.requested = []

    def setblocking(self, flag):
        pass

    def recv(self, size):
        self.requested.append(size)
        return self.chunks.pop(0)


@pytest.fixture
def pair():
    a, b = channel_pair()
    yield a, b
    a.close()
    b.close()


class TestExactIO:
    """Tests for send_exact / recv_exact."""

    def test_send_and_receive(self, pair):
        a, b = pair
        a.send_exact(b"hello world")
        assert b.recv_exact(11) == b"hello world"
        assert a.bytes_sent == 11
        assert b.bytes_received == 11

    def test_short_reads_are_joined(self, pair):
        """Bytes dribbled in small pieces still come back as one read."""
        a, b = pair
        data = bytes(range(256)) * 4

        def dribble():
            for i in range(0, len(data), 7):
                a.socket.sendall(data[i:i + 7])
                time.sleep(0.001)

        writer = threading.Thread(target=dribble)
        writer.start()
        assert b.recv_exact(len(data)) == data
        writer.join()

    def test_small_buffer_size(self, pair):
        a, b = pair
        b.buffer_size = 3
        a.send_exact(b"0123456789")
        assert b.recv_exact(10) == b"0123456789"

    def test_zero_bytes(self, pair):
        _, b = pair
        assert b.recv_exact(0) == b""

    def test_peer_close_before_count_is_error(self, pair):
        a, b = pair
        a.send_exact(b"abc")
        a.close()

        with pytest.raises(TransportError) as exc_info:
            b.recv_exact(10)

        assert exc_info.value.received == 3

    def test_buffer_grows_with_received_data(self):
        """A large announced size is not allocated up front."""
        sock = RecordingSocket([b"abc", b"de", b""])
        channel = Channel(sock, ("peer", 0))
        channel.buffer_size = 4096

        with pytest.raises(TransportError) as exc_info:
            channel.recv_exact(0xFFFFFFFF)

        assert exc_info.value.received == 5
        assert sock.requested == [4096, 4096, 4096]

    def test_peer_close_at_boundary(self, pair):
        a, b = pair
        a.close()
        with pytest.raises(TransportError) as exc_info:
            b.recv_exact(HEADER_SIZE)
        assert exc_info.value.received == 0

    def test_send_after_peer_close(self, pair):
        a, b = pair
        b.close()
        with pytest.raises(TransportError):
            # The first write may still be buffered; keep writing until it fails
            for _ in range(100):
                a.send_exact(b"x" * 65536)


class TestHeaders:
    """Tests for header framing."""

    def test_header_with_payload(self, pair):
        a, b = pair
        a.send_header(Header(Command.PUT, 4, "f.bin"), b"\0\1\2\3")

        header = b.recv_header()
        assert header == Header(Command.PUT, 4, "f.bin")
        assert b.recv_exact(header.nbytes) == b"\0\1\2\3"

    def test_back_to_back_headers(self, pair):
        a, b = pair
        a.send_header(Header(Command.LS))
        a.send_header(Header(Command.RM, 0, "x"))

        assert b.recv_header().command == Command.LS
        assert b.recv_header().filename == "x"


class TestLifecycle:
    """Tests for connect and close."""

    def test_close_is_idempotent(self, pair):
        a, _ = pair
        a.close()
        a.close()
        assert a.state == ChannelState.CLOSED
        assert a.is_closed

    def test_context_manager_closes(self):
        a, b = channel_pair()
        with a:
            pass
        assert a.is_closed
        b.close()

    def test_connect_refused(self, free_port):
        with pytest.raises(TransportError):
            Channel.connect("127.0.0.1", free_port)

    def test_ids_are_unique(self):
        a, b = channel_pair()
        assert a.id != b.id
        a.close()
        b.close()

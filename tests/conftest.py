"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cix import CixServer, ServerConfig
from cix.core.channel import Channel
from cix.handlers import Dispatcher
from cix.protocol import Header


def channel_pair():
    """Two connected Channels over a socketpair: (server end, client end)."""
    server_sock, client_sock = socket.socketpair()
    return Channel(server_sock, ("client", 0)), Channel(client_sock, ("cixd", 0))


class DispatcherHarness:
    """Runs a Dispatcher on one end of a socketpair in a background thread."""

    def __init__(self, root: Path, **kwargs):
        self.server, self.client = channel_pair()
        self.dispatcher = Dispatcher(self.server, root=str(root), **kwargs)
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        with self.server:
            self.dispatcher.run()

    def start(self) -> "DispatcherHarness":
        self._thread.start()
        return self

    def stop(self):
        self.client.close()
        self._thread.join(timeout=5.0)

    @property
    def finished(self) -> bool:
        return not self._thread.is_alive()

    def request(self, header: Header, payload: bytes = b"") -> Header:
        self.client.send_header(header, payload)
        return self.client.recv_header()


@pytest.fixture
def served_dir(tmp_path: Path) -> Path:
    """Directory the server side operates on."""
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def local_dir(tmp_path: Path) -> Path:
    """Directory the client side reads from and writes to."""
    local = tmp_path / "local"
    local.mkdir()
    return local


@pytest.fixture
def harness(served_dir: Path) -> Generator[DispatcherHarness, None, None]:
    h = DispatcherHarness(served_dir).start()
    yield h
    h.stop()


class RunningServer:
    """CixServer running in a background thread."""

    def __init__(self, server: CixServer):
        self.server = server
        self._thread = threading.Thread(target=server.run, daemon=True)

    def start(self):
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        self._thread.join(timeout=5.0)

    @property
    def port(self) -> int:
        return self.server.address[1]

    def connect(self) -> Channel:
        return Channel.connect("127.0.0.1", self.port)


@pytest.fixture
def running_server(served_dir: Path) -> Generator[RunningServer, None, None]:
    server = CixServer(ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        accept_timeout=0.1,
        root=str(served_dir),
        log_level="WARNING",
    ))
    srv = RunningServer(server)
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def free_port() -> int:
    """A port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]

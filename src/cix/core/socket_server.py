"""
=============================================================================
LISTENING SOCKET AND ACCEPT LOOP
=============================================================================

SocketServer owns the listening socket. It accepts connections, wraps
each one in a Channel and hands it to a callback; it never reads or
writes client data itself.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    socket() → setsockopt(SO_REUSEADDR) → bind() → listen() → accept()...

=============================================================================
ACCEPT FAILURES
=============================================================================

    EINTR
        A signal arrived while accept() was blocked. Python already retries
        accept() after running the handler (PEP 475), so the loop never sees
        it. InterruptedError only surfaces if a handler raises it; _accept()
        logs that case and calls accept() again.

    socket.timeout
        accept() blocks for at most config.accept_timeout so the loop can
        notice shutdown(). Loop again.

    EBADF
        The listening socket itself is gone. Leave the loop.

    any other OSError (ECONNABORTED, EMFILE, ...)
        Belongs to the one connection being accepted. Log it and keep
        listening.

A failing connection handler (for example a worker thread that could not
be started) is logged too; the channel is closed and the loop goes on.

=============================================================================
"""

import errno
import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .channel import Channel


logger = logging.getLogger(__name__)


class SocketServer:
    """
    TCP listener with a blocking accept loop.

    Usage:
        def handle(channel: Channel):
            ...

        server = SocketServer(config)
        server.start(handle)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig, log=None):
        self.config = config
        self._log = log or logger

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound address; with port 0 this reports the port the OS chose."""
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restarting cixd must not fail on a port still in TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.settimeout(self.config.accept_timeout)
        return sock

    def _setup_signals(self):
        """Turn SIGINT/SIGTERM into a clean shutdown (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            self._log.info(f"caught {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Channel], None]):
        """
        Bind, listen and accept until shutdown() is called.

        Raises:
            OSError: bind() or listen() failed.
        """
        self._socket = self._create_socket()
        try:
            self._socket.bind((self.config.host, self.config.port))
            self._socket.listen(self.config.backlog)
        except OSError as e:
            self._log.error(f"cannot listen on {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._running = True
        self._setup_signals()

        host, port = self.address
        self._log.info(f"{socket.gethostname()} accepting on {host}:{port}")
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept(self) -> Tuple[socket.socket, Tuple[str, int]]:
        """accept(), retried for as long as it is interrupted by a signal."""
        while True:
            try:
                return self._socket.accept()
            except InterruptedError:
                self._log.info("accept caught Interrupted system call")

    def _accept_loop(self, connection_handler: Callable[[Channel], None]):
        while self._running:
            try:
                client_socket, client_address = self._accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running or e.errno == errno.EBADF:
                    break
                self._log.error(f"accept failed: {e}")
                continue

            channel = Channel(socket=client_socket, address=client_address[:2])
            self._log.info(f"accepted {channel}")

            try:
                connection_handler(channel)
            except Exception as e:
                self._log.error(f"[{channel.id}] cannot serve {channel}: {e}")
                channel.close()

    def shutdown(self):
        """Stop the accept loop. Idempotent, callable from any thread."""
        self._running = False

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        self._log.info("listener stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

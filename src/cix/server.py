"""
=============================================================================
CIXD SERVER
=============================================================================

Ties the listener, the workers and the dispatcher together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CixServer                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer.start(_handle_connection)                            │
    │        │                                                             │
    │        └──► for each accepted Channel:                              │
    │                 reaper.spawn(_serve)   one thread per connection    │
    │                 reaper.reap()          collect finished workers     │
    │                                                                      │
    │   _serve(channel)   (worker thread)                                 │
    │        └──► Dispatcher(channel).run()                               │
    │        └──► channel.close()                                         │
    │                                                                      │
    │   reaper watcher thread collects workers as they end                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A worker owns its channel outright; the listener forgets the channel as
soon as the worker is started.

=============================================================================
"""

from typing import Optional, Tuple

from .config import ServerConfig
from .core import Channel, SocketServer, WorkerReaper
from .handlers import Dispatcher
from .log import ExecnameAdapter, get_logger, setup_logging


class CixServer:
    """
    The cixd file server.

    Usage:
        server = CixServer(ServerConfig(port=50000, root="/srv/files"))
        server.run()  # Blocks until SIGINT/SIGTERM or shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None, log: Optional[ExecnameAdapter] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self.log = log or get_logger("cixd")
        self._socket_server = SocketServer(self.config, log=self.log)
        self._reaper = WorkerReaper(log=self.log)

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def reaper(self) -> WorkerReaper:
        return self._reaper

    def run(self):
        """Serve until shut down."""
        setup_logging(self.config.log_level)
        self.log.info("starting")
        self._reaper.start()
        try:
            self._socket_server.start(self._handle_connection)
        except OSError as e:
            self.log.error(f"listener failed: {e}")
        finally:
            self._reaper.stop()
            self.log.info("finishing")

    def shutdown(self):
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _handle_connection(self, channel: Channel):
        """Give the channel to a new worker, then reap finished ones."""
        worker = self._reaper.spawn(
            lambda: self._serve(channel),
            name=f"cixd-server-{channel.id}",
        )
        self.log.info(f"spawned {worker.name} for {channel}")
        self._reaper.reap()

    def _serve(self, channel: Channel):
        """Worker thread body."""
        with channel:
            Dispatcher(
                channel,
                root=self.config.root,
                listing_command=self.config.listing_command,
                log=self.log.child("server"),
            ).run()

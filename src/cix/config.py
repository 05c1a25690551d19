"""
=============================================================================
CIX CONFIGURATION
=============================================================================

Configuration for the client and the server, as typed dataclasses.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments     cix myhost 50123                    │
    │   2. Environment variables      CIX_SERVER_PORT=50123 cixd          │
    │   3. Default values             (in these dataclasses)              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

ENVIRONMENT VARIABLES
─────────────────────
    CIX_SERVER_HOST   Host the client connects to     (default: localhost)
    CIX_SERVER_PORT   Port for both sides             (default: 50000)
    CIX_ROOT          Directory the server operates on (default: cwd)
    CIX_LOG_LEVEL     Logging level                   (default: INFO)

Both configs validate eagerly so a bad port fails at startup, not on the
first connection.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Tuple


DEFAULT_HOST = "localhost"
DEFAULT_PORT = 50000

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_port() -> int:
    return int(os.getenv("CIX_SERVER_PORT", str(DEFAULT_PORT)))


def _check_port(port: int, allow_zero: bool) -> None:
    low = 0 if allow_zero else 1
    if not low <= port < 65536:
        raise ValueError(f"Invalid port: {port}. Must be {low}-65535.")


def _check_log_level(level: str) -> None:
    if level.upper() not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}")


@dataclass
class ClientConfig:
    """Where the client connects and where it reads/writes local files."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    workdir: str = "."
    """Local directory that get writes into and put reads from."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            host=os.getenv("CIX_SERVER_HOST", DEFAULT_HOST),
            port=_env_port(),
            log_level=os.getenv("CIX_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        _check_port(self.port, allow_zero=False)
        _check_log_level(self.log_level)


@dataclass
class ServerConfig:
    """
    Configuration for cixd.

    port=0 lets the OS pick a free port; the bound port is then available
    from CixServer.address.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    backlog: int = 128
    """Pending connections the kernel queues before refusing."""

    accept_timeout: float = 1.0
    """
    How long accept() blocks before the loop re-checks for shutdown.
    A timeout is not an error; the loop just waits again.
    """

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    root: str = field(default_factory=os.getcwd)
    """Directory every filename is resolved against."""

    listing_command: Tuple[str, ...] = ("ls", "-l")
    """Command whose combined stdout/stderr answers LS."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(
            port=_env_port(),
            root=os.getenv("CIX_ROOT") or os.getcwd(),
            log_level=os.getenv("CIX_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        _check_port(self.port, allow_zero=True)

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.accept_timeout <= 0:
            raise ValueError("accept_timeout must be > 0")

        if not os.path.isdir(self.root):
            raise ValueError(f"root is not a directory: {self.root}")

        if not self.listing_command:
            raise ValueError("listing_command must not be empty")

        _check_log_level(self.log_level)

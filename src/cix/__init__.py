"""
=============================================================================
CIX - Remote File Access Over a Fixed-Header Protocol
=============================================================================

A small client/server pair for copying files to and from a remote
directory over TCP:

    cix  (client)                               cixd (server)
    ─────────────                               ─────────────
    get notes.txt   ── {GET, 0, "notes.txt"} ──►
                    ◄── {FILEOUT, 812, ""} ────  reads ./notes.txt
                    ◄── 812 bytes ─────────────
    ls              ── {LS, 0, ""} ───────────►
                    ◄── {LSOUT, n, ""} + n ────  runs ls -l
    put a.bin       ── {PUT, n, "a.bin"} + n ──►  writes ./a.bin
                    ◄── {ACK, 0, ""} ──────────
    rm a.bin        ── {RM, 0, "a.bin"} ──────►  unlinks ./a.bin
                    ◄── {ACK, 0, ""} ──────────

Failures come back as {NAK, errno, ""}.

=============================================================================
PACKAGE LAYOUT
=============================================================================

    protocol/   Header layout and Command values
    core/       Channel (exact-byte framing), SocketServer, WorkerReaper
    handlers/   Dispatcher: server-side GET/LS/PUT/RM
    client.py   ClientSession: interactive command loop
    server.py   CixServer: listener + one worker thread per connection
    config.py   ClientConfig / ServerConfig
    log.py      Logging setup

=============================================================================
"""

__version__ = "1.0.0"

from .config import ClientConfig, ServerConfig
from .client import ClientSession
from .server import CixServer

__all__ = ["CixServer", "ClientSession", "ClientConfig", "ServerConfig", "__version__"]

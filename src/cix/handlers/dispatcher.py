"""
=============================================================================
PER-CONNECTION DISPATCHER
=============================================================================

A Dispatcher serves one client for the life of its connection:

    ┌─────────────────────┐
    │  AWAITING_HEADER    │ ◄──────────────────────────┐
    └──────────┬──────────┘                            │
               │ recv_header()                         │
               ▼                                       │
    ┌─────────────────────┐   GET  → reply_get ───────┤
    │      HANDLING       │   LS   → reply_ls  ───────┤
    │                     │   PUT  → reply_put ───────┤
    │                     │   RM   → reply_rm  ───────┤
    │                     │   else → log, no reply ───┘
    └─────────────────────┘

    TransportError anywhere → connection over.

Filesystem problems never end the connection: they go back to the
client as NAK with the errno in nbytes.

    request          success                        failure
    ───────────────  ─────────────────────────────  ──────────
    {GET, 0, name}   {FILEOUT, n, ""} + n bytes     {NAK, errno}
    {LS}             {LSOUT, n, ""} + n bytes       {NAK, errno}
    {PUT, n, name}   {ACK, 0, ""}                   {NAK, errno}
      + n bytes
    {RM, 0, name}    {ACK, 0, ""}                   {NAK, errno}

=============================================================================
"""

import errno
import logging
import os
import subprocess
from typing import Callable, Dict, Optional, Sequence

from ..core.channel import Channel, TransportError
from ..protocol import Command, Header, MAX_NBYTES


logger = logging.getLogger(__name__)


def _errno(e: OSError) -> int:
    return e.errno if e.errno is not None else errno.EIO


class Dispatcher:
    """
    Reads headers from one channel and runs the matching handler.

    Args:
        channel: The client connection. The dispatcher does not close it.
        root: Directory that filenames are resolved against.
        listing_command: argv run for LS.
        log: Logger to write to (defaults to the module logger).
    """

    def __init__(
        self,
        channel: Channel,
        root: str = ".",
        listing_command: Sequence[str] = ("ls", "-l"),
        log=None,
    ):
        self.channel = channel
        self.root = root
        self.listing_command = list(listing_command)
        self.log = log or logger

        self._handlers: Dict[int, Callable[[Header], None]] = {
            Command.GET: self.reply_get,
            Command.LS: self.reply_ls,
            Command.PUT: self.reply_put,
            Command.RM: self.reply_rm,
        }

    def run(self):
        """Serve requests until the connection fails or the client leaves."""
        self.log.info(f"[{self.channel.id}] connected to {self.channel}")
        try:
            while True:
                header = self.channel.recv_header()
                self.log.info(f"[{self.channel.id}] received header {header}")

                handler = self._handlers.get(header.command)
                if handler is None:
                    self.log.warning(f"[{self.channel.id}] invalid header from client: {header}")
                    continue
                handler(header)
        except TransportError as e:
            if e.received:
                self.log.error(f"[{self.channel.id}] {e}")
            else:
                self.log.info(f"[{self.channel.id}] {e}")
        self.log.info(f"[{self.channel.id}] finishing")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _path(self, filename: str) -> str:
        return os.path.join(self.root, filename)

    def _send(self, header: Header, payload: bytes = b""):
        self.log.info(f"[{self.channel.id}] sending header {header}")
        self.channel.send_header(header, payload)
        if payload:
            self.log.info(f"[{self.channel.id}] sent {len(payload)} bytes")

    def _nak(self, header: Header, code: int, what: str):
        self.log.warning(f"[{self.channel.id}] {what}: {os.strerror(code)}")
        header.command = Command.NAK
        header.nbytes = code
        header.clear_filename()
        self._send(header)

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def reply_get(self, header: Header):
        try:
            with open(self._path(header.filename), "rb") as f:
                content = f.read()
        except OSError as e:
            self._nak(header, _errno(e), f"get {header.filename}")
            return

        if len(content) > MAX_NBYTES:
            self._nak(header, errno.EFBIG, f"get {header.filename}")
            return

        header.command = Command.FILEOUT
        header.nbytes = len(content)
        header.clear_filename()
        self._send(header, content)

    def reply_ls(self, header: Header):
        try:
            result = subprocess.run(
                self.listing_command,
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            self._nak(header, _errno(e), f"{' '.join(self.listing_command)}: launch failed")
            return

        if result.returncode < 0:
            self.log.info(f"{' '.join(self.listing_command)}: signal {-result.returncode}")
        else:
            self.log.info(f"{' '.join(self.listing_command)}: exit {result.returncode}")

        output = result.stdout[:MAX_NBYTES]
        header.command = Command.LSOUT
        header.nbytes = len(output)
        header.clear_filename()
        self._send(header, output)

    def reply_put(self, header: Header):
        if header.command != Command.PUT:
            self._nak(header, errno.EPROTO, f"put: unexpected {header}")
            return

        content = self.channel.recv_exact(header.nbytes)
        self.log.info(f"[{self.channel.id}] received {header.nbytes} bytes")

        try:
            with open(self._path(header.filename), "wb") as f:
                f.write(content)
        except OSError as e:
            self._nak(header, _errno(e), f"put {header.filename}")
            return

        header.command = Command.ACK
        header.nbytes = 0
        header.clear_filename()
        self._send(header)

    def reply_rm(self, header: Header):
        path = self._path(header.filename)
        try:
            with open(path, "rb"):
                pass
            os.unlink(path)
        except OSError as e:
            self._nak(header, _errno(e), f"rm {header.filename}")
            return

        header.command = Command.ACK
        header.nbytes = 0
        header.clear_filename()
        self._send(header)

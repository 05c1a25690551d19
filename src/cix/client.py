"""
=============================================================================
CIX CLIENT SESSION
=============================================================================

Interactive command loop. Each input line is one command; commands that
need the server run exactly one request/response exchange.

    ┌──────────────────┐  readline()  ┌──────────────────┐
    │  AWAITING_INPUT  │ ───────────► │   DISPATCHING    │
    └──────────────────┘ ◄─────────── └──────────────────┘
            │                done
            │ EOF / exit
            ▼
    ┌──────────────────┐
    │      EXITED      │
    └──────────────────┘

A failed command (NAK, unexpected response, unreadable local file) is
reported and the loop continues. A TransportError ends the session; it
is logged and run() still returns 0.

=============================================================================
"""

import logging
import os
import sys
from typing import Optional, TextIO, Tuple

from .core.channel import Channel, TransportError
from .protocol import Command, Header, MAX_NBYTES


logger = logging.getLogger(__name__)


HELP = """
exit         - Exit the program.  Equivalent to EOF.
get filename - Copy remote file to local host.
help         - Print help summary.
ls           - List names of files on remote server.
put filename - Copy local file to remote host.
rm filename  - Remove file from remote server.
"""

# keyword → (command, takes a filename)
COMMANDS = {
    "exit": (Command.EXIT, False),
    "get": (Command.GET, True),
    "help": (Command.HELP, False),
    "ls": (Command.LS, False),
    "put": (Command.PUT, True),
    "rm": (Command.RM, True),
}


def parse_command(line: str) -> Tuple[Command, Optional[str]]:
    """
    Split an input line into a command and its filename.

    The filename is everything after the first run of whitespace, so names
    with inner spaces survive. Unknown keywords and wrong argument counts
    come back as Command.ERROR.

    Examples:
        parse_command("get notes.txt")  → (Command.GET, "notes.txt")
        parse_command("ls")             → (Command.LS, None)
        parse_command("frobnicate")     → (Command.ERROR, None)
    """
    parts = line.strip().split(None, 1)
    if not parts:
        return Command.ERROR, None

    entry = COMMANDS.get(parts[0])
    if entry is None:
        return Command.ERROR, None

    command, takes_filename = entry
    if takes_filename != (len(parts) == 2):
        return Command.ERROR, None
    return command, parts[1] if takes_filename else None


def describe_errno(code: int) -> str:
    """strerror() for a NAK code; any u32 is legal on the wire."""
    try:
        return os.strerror(code)
    except (ValueError, OverflowError):
        return f"error {code}"


class ClientSession:
    """
    One client connected to one server.

    Args:
        channel: Connected channel to cixd.
        stdin: Where command lines come from.
        stdout: Where help text and listings go.
        workdir: Local directory for get/put files.
        log: Logger to write to (defaults to the module logger).
    """

    def __init__(
        self,
        channel: Channel,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        workdir: str = ".",
        log=None,
    ):
        self.channel = channel
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.workdir = workdir
        self.log = log or logger

    def run(self) -> int:
        """Read and execute commands until EOF, exit or a transport failure."""
        try:
            while True:
                line = self.stdin.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                if not self.execute(line):
                    break
        except TransportError as e:
            self.log.error(str(e))
        self.log.info("finishing")
        return 0

    def execute(self, line: str) -> bool:
        """Run one command line. Returns False when the session should end."""
        command, filename = parse_command(line)
        self.log.debug(f"command {line.strip()}")

        if command == Command.EXIT:
            return False
        if command == Command.HELP:
            self.help()
        elif command == Command.GET:
            self.get(filename)
        elif command == Command.LS:
            self.ls()
        elif command == Command.PUT:
            self.put(filename)
        elif command == Command.RM:
            self.rm(filename)
        else:
            self.log.error(f"{line.strip()}: invalid command")
        return True

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def help(self):
        self.stdout.write(HELP)
        self.stdout.flush()

    def _exchange(self, header: Header, payload: bytes = b"") -> Header:
        """Send one request and wait for its response header."""
        if header.truncated:
            self.log.warning(f"filename truncated to {header.wire_filename!r}")
        self.log.info(f"sending header {header}")
        self.channel.send_header(header, payload)
        reply = self.channel.recv_header()
        self.log.info(f"received header {reply}")
        return reply

    def _report(self, what: str, reply: Header):
        if reply.command == Command.NAK:
            self.log.error(f"{what}: {describe_errno(reply.nbytes)}")
        else:
            self.log.error(f"{what}: unexpected response {reply}")

    def get(self, filename: str) -> bool:
        reply = self._exchange(Header(Command.GET, 0, filename))
        if reply.command != Command.FILEOUT:
            self._report(f"get {filename}", reply)
            return False

        content = self.channel.recv_exact(reply.nbytes)
        self.log.debug(f"received {reply.nbytes} bytes")
        try:
            with open(os.path.join(self.workdir, filename), "wb") as f:
                f.write(content)
        except OSError as e:
            self.log.error(f"get {filename}: {e.strerror}")
            return False
        return True

    def ls(self) -> bool:
        reply = self._exchange(Header(Command.LS))
        if reply.command != Command.LSOUT:
            self._report("ls", reply)
            return False

        listing = self.channel.recv_exact(reply.nbytes)
        self.log.debug(f"received {reply.nbytes} bytes")
        self.stdout.write(listing.decode("utf-8", errors="replace"))
        self.stdout.flush()
        return True

    def put(self, filename: str) -> bool:
        header = Header(Command.PUT, 0, filename)
        try:
            with open(os.path.join(self.workdir, filename), "rb") as f:
                content = f.read()
        except OSError as e:
            self.log.error(f"put {filename}: {e.strerror}")
            # Tell the server the upload is off; it sends nothing back
            header.command = Command.NAK
            header.nbytes = e.errno or 0
            self.log.info(f"sending header {header}")
            self.channel.send_header(header)
            return False

        if len(content) > MAX_NBYTES:
            self.log.error(f"put {filename}: file too large ({len(content)} bytes)")
            return False

        header.nbytes = len(content)
        reply = self._exchange(header, content)
        if reply.command != Command.ACK:
            self._report(f"put {filename}", reply)
            return False
        return True

    def rm(self, filename: str) -> bool:
        reply = self._exchange(Header(Command.RM, 0, filename))
        if reply.command != Command.ACK:
            self._report(f"rm {filename}", reply)
            return False
        return True

"""
=============================================================================
CIX COMMAND-LINE ENTRY POINTS
=============================================================================

    cix  [host] [port]      interactive client (also: python -m cix)
    cixd [port]             file server for the current directory

Missing arguments fall back to CIX_SERVER_HOST / CIX_SERVER_PORT, then to
localhost / 50000.

Both programs exit 0 when they end normally, and also when the connection
or listener fails: the failure is logged, not turned into an exit status.
Only a usage error (argparse) exits non-zero.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .client import ClientSession
from .config import ClientConfig, ServerConfig
from .core.channel import Channel, TransportError
from .log import get_logger, setup_logging
from .server import CixServer


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _client_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cix",
        description="Copy files to and from a cixd server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands (read from standard input):
  exit, help, ls, get <file>, put <file>, rm <file>
        """,
    )
    parser.add_argument("host", nargs="?", help="Server host (default: $CIX_SERVER_HOST or localhost)")
    parser.add_argument("port", nargs="?", type=int, help="Server port (default: $CIX_SERVER_PORT or 50000)")
    parser.add_argument("--workdir", "-d", default=".", help="Local directory for get/put (default: .)")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None, help="Logging level")
    parser.add_argument("--version", "-v", action="version", version=f"cix {__version__}")
    return parser


def _server_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cixd", description="Serve a directory to cix clients")
    parser.add_argument("port", nargs="?", type=int, help="Port to listen on (default: $CIX_SERVER_PORT or 50000)")
    parser.add_argument("--host", "-H", default="0.0.0.0", help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--root", "-r", default=None, help="Directory to serve (default: $CIX_ROOT or cwd)")
    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default=None, help="Logging level")
    parser.add_argument("--version", "-v", action="version", version=f"cixd {__version__}")
    return parser


def client_main(argv: Optional[List[str]] = None) -> int:
    args = _client_parser().parse_args(argv)

    config = ClientConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.log_level is not None:
        config.log_level = args.log_level
    config.workdir = args.workdir
    config.validate()

    setup_logging(config.log_level)
    log = get_logger("cix")
    log.info("starting")

    try:
        log.info(f"connecting to {config.host} port {config.port}")
        channel = Channel.connect(config.host, config.port)
    except TransportError as e:
        log.error(str(e))
        log.info("finishing")
        return 0

    log.info(f"connected to {channel}")
    with channel:
        return ClientSession(channel, workdir=config.workdir, log=log).run()


def server_main(argv: Optional[List[str]] = None) -> int:
    args = _server_parser().parse_args(argv)

    config = ServerConfig.from_env()
    config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.root is not None:
        config.root = args.root
    if args.log_level is not None:
        config.log_level = args.log_level

    CixServer(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(client_main())

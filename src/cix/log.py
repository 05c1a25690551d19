"""
Logging setup shared by cix and cixd.

Each program configures the root logger once at startup and then hands an
ExecnameAdapter to every component it builds. The adapter prefixes each
line with the program name, so output from the listener (`cixd`) and from
its connection workers (`cixd-server`) can be told apart:

    2026-10-19 14:06:01 [INFO] cix: cixd: listening on 0.0.0.0:50000
    2026-10-19 14:06:03 [INFO] cix: cixd-server: connected to 127.0.0.1:40112
"""

import logging
from typing import Union


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ExecnameAdapter(logging.LoggerAdapter):
    """LoggerAdapter that prefixes messages with a program name."""

    @property
    def execname(self) -> str:
        return self.extra["execname"]

    def process(self, msg, kwargs):
        return f"{self.execname}: {msg}", kwargs

    def child(self, suffix: str) -> "ExecnameAdapter":
        """Adapter for a sub-role, e.g. cixd → cixd-server."""
        return ExecnameAdapter(self.logger, {"execname": f"{self.execname}-{suffix}"})


def get_logger(execname: str, name: str = "cix") -> ExecnameAdapter:
    return ExecnameAdapter(logging.getLogger(name), {"execname": execname})


def setup_logging(level: Union[str, int] = "INFO") -> None:
    """Configure the root logger and the cix logger level."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    logging.getLogger("cix").setLevel(level)

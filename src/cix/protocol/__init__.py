"""
Wire protocol shared by the cix client and the cixd server.
"""

from .header import (
    Command,
    Header,
    FILENAME_SIZE,
    HEADER_FORMAT,
    HEADER_SIZE,
    MAX_NBYTES,
    bounded_copy,
    command_name,
)

__all__ = [
    "Command",
    "Header",
    "FILENAME_SIZE",
    "HEADER_FORMAT",
    "HEADER_SIZE",
    "MAX_NBYTES",
    "bounded_copy",
    "command_name",
]

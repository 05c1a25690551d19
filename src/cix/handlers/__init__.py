"""
Server-side request handlers.

The Dispatcher reads headers from one connection and routes them:

    GET → reply_get     send a file
    LS  → reply_ls      send a directory listing
    PUT → reply_put     store a file
    RM  → reply_rm      delete a file

Anything else is logged and ignored.
"""

from .dispatcher import Dispatcher

__all__ = ["Dispatcher"]

"""
=============================================================================
CORE NETWORKING
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer   listening socket, accept loop, EINTR retry          │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │ one Channel per accepted socket
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  WorkerReaper   one ConnectionWorker thread per connection,         │
    │                 collected when it finishes                          │
    └───────────────────────────────┬─────────────────────────────────────┘
                                    │ worker drives the Channel
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  Channel        exact-size send/recv of headers and payloads        │
    └─────────────────────────────────────────────────────────────────────┘

The client uses Channel alone.
=============================================================================
"""

from .channel import Channel, ChannelState, TransportError
from .reaper import ConnectionWorker, WorkerReaper, WorkerStatus
from .socket_server import SocketServer

__all__ = [
    "Channel",
    "ChannelState",
    "TransportError",
    "ConnectionWorker",
    "WorkerReaper",
    "WorkerStatus",
    "SocketServer",
]

"""
Networking core: the accept loop, per-connection wrapper and drain counter.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer, ServerState
from .waitgroup import WaitGroup

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ServerState",
    "WaitGroup",
]

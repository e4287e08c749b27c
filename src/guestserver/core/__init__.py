"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing underneath the HTTP layer:

    SocketServer      Binds, listens, runs the accept loop. Hands every
        │             accepted socket off without waiting on it.
        ▼
    Connection        One client socket: bounded read of the request head,
        │             sendall of the response, graceful close.
        ▼
    ConnectionHandler Read → parse → route → invoke → write → close, on the
                      connection's own thread (core.handler).

    ReadWriteLock     Guards the route table when routes may be added while
                      listening.

ConnectionHandler lives in core.handler and is imported from there; it
depends on the http package, which itself uses ReadWriteLock from here.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .rwlock import ReadWriteLock

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ReadWriteLock",
]

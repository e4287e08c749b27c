"""
=============================================================================
guestserver - a minimal HTTP/1.1 server library
=============================================================================

Register handler functions for exact GET paths; the server accepts TCP
connections, answers one request per connection, and closes it.

=============================================================================
QUICK START
=============================================================================

    from guestserver import new_server, HTTPResponse

    server = new_server()

    @server.get("/")
    def home(query):
        return HTTPResponse(200, "Hello, World!")

    @server.get("/search")
    def search(query):
        # query is the raw text after "?", e.g. "q=term", or None
        return HTTPResponse(200, f"searching for {query}")

    server.listen(8080)

A handler receives the unparsed query string and returns an HTTPResponse.
The server itself answers:

    400  malformed request line, oversized or stalled request
    404  no handler for the path
    405  any method other than GET
    500  handler raised or did not return an HTTPResponse

=============================================================================
"""

__version__ = "0.1.0"

from .config import ServerConfig
from .errors import (
    AcceptError,
    BindError,
    GuestServerError,
    HTTPParseError,
    RouteTableClosedError,
    ServerStateError,
)
from .http import HTTPResponse, HTTPStatus
from .server import Server, ServerState, new_server

__all__ = [
    "Server",
    "ServerState",
    "ServerConfig",
    "new_server",
    "HTTPResponse",
    "HTTPStatus",
    "GuestServerError",
    "HTTPParseError",
    "BindError",
    "AcceptError",
    "RouteTableClosedError",
    "ServerStateError",
    "__version__",
]

"""
=============================================================================
EXCEPTIONS
=============================================================================

Every error the server raises derives from GuestServerError, so host
programs can catch the whole family with one except clause.

    GuestServerError
     ├── HTTPParseError              → 400 Bad Request
     │    ├── RequestTooLargeError    (head exceeded max_request_size)
     │    ├── RequestTimeoutError     (idle read deadline passed)
     │    └── IncompleteRequestError  (peer closed before the blank line)
     ├── RouteTableClosedError       registration after listen()
     ├── ServerStateError            listen() in the wrong state
     ├── BindError                   address unavailable (fatal at startup)
     └── AcceptError                 listening socket became unusable

Parse errors never escape a connection: the connection handler turns them
into a 400 response. Only BindError, AcceptError and ServerStateError ever
reach the caller of Server.listen().

=============================================================================
"""

from typing import Optional, Tuple


class GuestServerError(Exception):
    """Base class for all guestserver errors."""


class HTTPParseError(GuestServerError):
    """
    Raised when a request cannot be turned into an HTTPRequest.

    Carries the HTTP status the connection handler should answer with.
    For every subclass here that is 400.
    """

    status_code = 400

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RequestTooLargeError(HTTPParseError):
    """The request head grew past the configured size limit."""


class RequestTimeoutError(HTTPParseError):
    """The client did not finish its request head before the read deadline."""


class IncompleteRequestError(HTTPParseError):
    """The client closed its side before sending the terminating blank line."""


class RouteTableClosedError(GuestServerError):
    """A route was registered after the table was frozen by listen()."""

    def __init__(self, path: str):
        super().__init__(
            f"Cannot register {path!r}: routes are closed once the server is listening"
        )
        self.path = path


class ServerStateError(GuestServerError):
    """An operation was attempted in a lifecycle state that forbids it."""


class BindError(GuestServerError):
    """The listening socket could not be bound."""

    def __init__(self, address: Tuple[str, int], cause: Optional[OSError] = None):
        host, port = address
        detail = f": {cause.strerror or cause}" if cause is not None else ""
        super().__init__(f"Failed to bind to {host}:{port}{detail}")
        self.address = address
        self.errno = cause.errno if cause is not None else None


class AcceptError(GuestServerError):
    """The listening socket failed in a way the accept loop cannot recover from."""

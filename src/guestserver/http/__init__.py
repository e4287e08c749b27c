"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

The minimal slice of HTTP/1.1 the server speaks:

    request.py       Request line → HTTPRequest (method, path, raw query)
    response.py      HTTPResponse → status line + Content-Length + body
    router.py        Exact path → handler table
    status_codes.py  Status codes and their fixed reason phrases

=============================================================================
"""

from .request import HTTPRequest, Method, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ok,                  # 200 OK
    bad_request,         # 400 Bad Request
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    internal_error,      # 500 Internal Server Error
)
from .router import Handler, RouteTable
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Request parsing
    "HTTPRequest",
    "Method",
    "RequestParser",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ok",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",

    # Routing
    "Handler",
    "RouteTable",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]

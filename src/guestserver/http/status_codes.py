"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes this server produces or names, plus the
fixed reason-phrase table used when writing the status line:

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (from _STATUS_PHRASES)
              └───────── Status code

Handlers may return any code in 100-599. Codes outside the table are
written with the generic phrase "Unknown"; clients only look at the
number anyway (RFC 7230 §3.1.2).

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes known to the server.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for this status code."""
        return reason_phrase(self)


UNKNOWN_PHRASE = "Unknown"

MIN_STATUS = 100
MAX_STATUS = 599


_STATUS_PHRASES = {
    200: "OK",
    201: "Created",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


def reason_phrase(status: int) -> str:
    """
    Look up the reason phrase for a status code.

    Args:
        status: Numeric status code.

    Returns:
        The phrase from the fixed table, or "Unknown".
    """
    return _STATUS_PHRASES.get(int(status), UNKNOWN_PHRASE)


def is_valid_status(status: object) -> bool:
    """True for an int (not bool) in the 100-599 range."""
    if isinstance(status, bool) or not isinstance(status, int):
        return False
    return MIN_STATUS <= status <= MAX_STATUS

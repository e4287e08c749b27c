"""
=============================================================================
HTTP RESPONSE
=============================================================================

HTTPResponse is the value a handler returns. It is immutable: build it,
return it, and the connection handler serializes it exactly once.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n              ← Status line (phrase from fixed table)
    Content-Length: 13\r\n           ← Always present, UTF-8 byte count
    X-Extra: value\r\n               ← Only headers added with with_header()
    \r\n                             ← Empty line (separator)
    Hello, World!                    ← Body bytes

No Date, Server or Content-Type headers are added on the server's own
initiative; what the handler built is what goes on the wire.

=============================================================================
"""

from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Tuple, Union
import logging

from .status_codes import HTTPStatus, is_valid_status, reason_phrase


logger = logging.getLogger(__name__)

Body = Union[str, bytes, None]

HTTP_VERSION = "HTTP/1.1"

_RESERVED_HEADERS = {"content-length"}


@dataclass(frozen=True)
class HTTPResponse:
    """
    An HTTP response: status code plus optional body.

    Construction never fails. A status that is not an integer in 100-599
    is replaced with 500 and the anomaly is logged:

        >>> HTTPResponse(200, "Hello, World!").serialize()
        b'HTTP/1.1 200 OK\\r\\nContent-Length: 13\\r\\n\\r\\nHello, World!'

    Attributes:
        status: Numeric HTTP status code.
        body: Text (encoded as UTF-8 on the wire), raw bytes, or None.
        headers: Extra header pairs, in the order they were added.
    """

    status: int = HTTPStatus.OK
    body: Body = None
    headers: Tuple[Tuple[str, str], ...] = field(default=(), repr=False)

    def __post_init__(self):
        if not is_valid_status(self.status):
            logger.warning(
                f"Invalid status code {self.status!r} in response, substituting 500"
            )
            object.__setattr__(self, "status", int(HTTPStatus.INTERNAL_SERVER_ERROR))
        else:
            object.__setattr__(self, "status", int(self.status))

    @property
    def reason(self) -> str:
        """Reason phrase written after the status code."""
        return reason_phrase(self.status)

    @property
    def status_line(self) -> str:
        """The first line of the response, e.g. "HTTP/1.1 404 Not Found"."""
        return f"{HTTP_VERSION} {self.status} {self.reason}"

    @property
    def body_bytes(self) -> bytes:
        """The body as it will be sent (empty when there is no body)."""
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    @property
    def content_length(self) -> int:
        return len(self.body_bytes)

    def with_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Return a copy of this response with one more header.

        Args:
            name: Header name. Content-Length is computed and cannot be set.
            value: Header value.

        Returns:
            A new HTTPResponse; this one is left untouched.

        Raises:
            ValueError: For a reserved name or a name/value that would
                        break the header block (CR, LF, or ':' in the name).
        """
        if not name or ":" in name or _has_line_break(name) or _has_line_break(value):
            raise ValueError(f"Invalid header {name!r}: {value!r}")
        if name.lower() in _RESERVED_HEADERS:
            raise ValueError(f"{name} is computed by the server and cannot be set")
        return replace(self, headers=self.headers + ((name, value),))

    def with_headers(
        self, headers: Union[Mapping[str, str], Iterable[Tuple[str, str]]]
    ) -> "HTTPResponse":
        """
        Return a copy with several headers appended, in iteration order.

        Each pair is checked exactly as with_header() checks it; if any is
        rejected, no copy is made.
        """
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        response = self
        for name, value in pairs:
            response = response.with_header(name, value)
        return response

    def serialize(self) -> bytes:
        """
        Serialize the response to bytes for sending over the socket.

        Returns:
            Complete HTTP response ready for socket.sendall().
        """
        body = self.body_bytes

        lines = [self.status_line, f"Content-Length: {len(body)}"]
        for name, value in self.headers:
            lines.append(f"{name}: {value}")

        # Empty line separates headers from body
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("utf-8") + body


def _has_line_break(text: str) -> bool:
    return "\r" in text or "\n" in text


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================


def ok(body: Body = None) -> HTTPResponse:
    """200 OK with the given body."""
    return HTTPResponse(HTTPStatus.OK, body)


def bad_request() -> HTTPResponse:
    """400 Bad Request, empty body."""
    return HTTPResponse(HTTPStatus.BAD_REQUEST)


def not_found() -> HTTPResponse:
    """404 Not Found, empty body."""
    return HTTPResponse(HTTPStatus.NOT_FOUND)


def method_not_allowed() -> HTTPResponse:
    """405 Method Not Allowed, empty body."""
    return HTTPResponse(HTTPStatus.METHOD_NOT_ALLOWED)


def internal_error() -> HTTPResponse:
    """500 Internal Server Error, empty body."""
    return HTTPResponse(HTTPStatus.INTERNAL_SERVER_ERROR)

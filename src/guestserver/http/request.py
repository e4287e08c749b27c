"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of a request head into an HTTPRequest. Only the
request line is modelled; headers are read off the wire (the connection
waits for the blank line) but their content is discarded.

=============================================================================
WHAT GETS PARSED
=============================================================================

    GET /search?q=term HTTP/1.1\r\n      ← request line (parsed)
    Host: localhost\r\n                  ← headers (ignored)
    \r\n                                 ← end of head
    ─┬─ ──────┬─────── ────┬───
     │        │            │
   Method   Target       Version
              │
      ┌───────┴────────┐
      │                │
    Path           Query string
   /search           q=term          ← passed to handlers as-is

The query string is never decoded or split into key/value pairs. The
handler receives exactly the text after the first "?".

=============================================================================
FAILURE MODES
=============================================================================

    Fewer than 3 tokens on the request line    → HTTPParseError
    Path that does not start with "/"          → HTTPParseError
    Head larger than max_request_size          → RequestTooLargeError
    Method other than GET                      → NOT an error; the request
                                                 is returned with
                                                 Method.OTHER and the
                                                 dispatcher answers 405

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import HTTPParseError, RequestTooLargeError


HEAD_TERMINATOR = b"\r\n\r\n"

DEFAULT_MAX_REQUEST_SIZE = 8192


class Method(Enum):
    """Request methods as far as routing is concerned."""

    GET = "GET"
    OTHER = "OTHER"

    @classmethod
    def from_token(cls, token: str) -> "Method":
        # Methods are case-sensitive (RFC 7230 §3.1.1): "get" is not GET
        return cls.GET if token == "GET" else cls.OTHER


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed request line.

    Attributes:
        method: Method.GET or Method.OTHER.
        path: Target up to (not including) the first "?". Always starts with "/".
        query: Raw text after the first "?", or None if there was no "?".
        version: Version token as sent, e.g. "HTTP/1.1".
        raw_method: Method token as sent, e.g. "POST".
    """

    method: Method
    path: str
    query: Optional[str] = None
    version: str = "HTTP/1.1"
    raw_method: str = "GET"

    @property
    def target(self) -> str:
        """The request target as it appeared on the request line."""
        if self.query is None:
            return self.path
        return f"{self.path}?{self.query}"


class RequestParser:
    """
    Parses raw request bytes into HTTPRequest objects.

    Stateless apart from its size limit, so one instance is shared by every
    connection thread.
    """

    def __init__(self, max_request_size: int = DEFAULT_MAX_REQUEST_SIZE):
        """
        Args:
            max_request_size: Largest head (request line + headers) accepted,
                              in bytes.
        """
        self.max_request_size = max_request_size

    def parse(self, data: bytes) -> HTTPRequest:
        """
        Parse a request head.

        Args:
            data: Bytes read from the connection. Anything after the first
                  blank line is ignored.

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request line is malformed.
            RequestTooLargeError: If the head exceeds max_request_size.
        """
        header_end = data.find(HEAD_TERMINATOR)
        head = data if header_end == -1 else data[:header_end]

        if len(head) > self.max_request_size:
            raise RequestTooLargeError(f"Request head too large: {len(head)} bytes")

        text = head.decode("utf-8", errors="replace")

        # splitlines() also accepts bare "\n" line endings
        lines = text.splitlines()
        request_line = lines[0] if lines else ""

        return self._parse_request_line(request_line)

    def _parse_request_line(self, line: str) -> HTTPRequest:
        # Format: METHOD SP REQUEST-TARGET SP HTTP-VERSION
        tokens = line.split()
        if len(tokens) < 3:
            raise HTTPParseError(f"Malformed request line: {line!r}")

        method_token, target, version = tokens[0], tokens[1], tokens[2]

        path, sep, query = target.partition("?")
        if not path.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {target!r}")

        return HTTPRequest(
            method=Method.from_token(method_token),
            path=path,
            query=query if sep else None,
            version=version,
            raw_method=method_token,
        )


_default_parser = RequestParser()


def parse_request(data: bytes) -> HTTPRequest:
    """
    Parse a request head with the default size limit.

    Convenience wrapper around RequestParser().parse().
    """
    return _default_parser.parse(data)

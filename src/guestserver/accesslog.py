"""
Access logging: one record per connection, written to the
"guestserver.access" logger so it can be routed separately from the
server's own diagnostics:

    logging.getLogger("guestserver.access").addHandler(file_handler)

Two formats:

    text   127.0.0.1 - - [18/Oct/2026:17:38:02 +0000] "GET /search?q=x HTTP/1.1" 200 13 0.41ms
    json   {"connection_id": "3f9a0c1d", "client_ip": "127.0.0.1", ...}
"""

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from .http.request import HTTPRequest


logger = logging.getLogger("guestserver.access")


@dataclass
class AccessLogEntry:
    """Structured record of one handled connection."""

    connection_id: str
    client_ip: str
    request_line: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    @classmethod
    def create(
        cls,
        connection_id: str,
        client_ip: str,
        request: Optional[HTTPRequest],
        status_code: int,
        content_length: int,
        duration: float,
    ) -> "AccessLogEntry":
        """
        Build an entry. request is None when the request never parsed, in
        which case the request line is logged as "-".
        """
        if request is None:
            request_line = "-"
        else:
            request_line = f"{request.raw_method} {request.target} {request.version}"
        return cls(
            connection_id=connection_id,
            client_ip=client_ip,
            request_line=request_line,
            status_code=status_code,
            content_length=content_length,
            duration_ms=duration * 1000.0,
            timestamp=datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache common-log style line."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.request_line}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )

    def format(self, log_format: str = "text") -> str:
        if log_format == "json":
            return json.dumps(self.to_dict())
        return self.to_text()


def log_access(entry: AccessLogEntry, log_format: str = "text") -> None:
    """
    Emit an entry on the access logger.

    Server errors are logged at WARNING so they survive a quieter log level.
    """
    level = logging.WARNING if entry.status_code >= 500 else logging.INFO
    if logger.isEnabledFor(level):
        logger.log(level, entry.format(log_format))

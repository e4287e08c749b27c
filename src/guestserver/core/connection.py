"""
=============================================================================
CONNECTION
=============================================================================

Wraps an accepted client socket with bounded reading, whole-buffer
writing, and a clean close.

Each connection carries exactly one request and one response:

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSING ──► CLOSED
              │
              └── deadline passed / too large / peer closed early
                  (the handler answers 400, then closes)

=============================================================================
READING UNDER A DEADLINE
=============================================================================

TCP delivers bytes in arbitrary chunks, so the head is accumulated until
the blank line (\r\n\r\n) shows up. Two limits apply:

    deadline = accepted_at + read_timeout

    while "\r\n\r\n" not in buffer:
        remaining = deadline - now
        remaining <= 0          → RequestTimeoutError
        recv(timeout=remaining) → chunk
        len(buffer) > max size  → RequestTooLargeError
        chunk == b""            → IncompleteRequestError

Every recv() waits only for the time that is left, so a client sending one
byte per second cannot keep the connection alive past the deadline.

=============================================================================
"""

import socket
import time
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum

from ..errors import IncompleteRequestError, RequestTimeoutError, RequestTooLargeError


logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and close bookkeeping."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    An accepted client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier, used as a log prefix.
        state: Current lifecycle state.
        created_at: Monotonic timestamp of accept; the read deadline counts
                    from here.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)

    # Configuration (passed from ServerConfig)
    buffer_size: int = 4096
    read_timeout: float = 10.0
    write_timeout: float = 10.0
    max_request_size: int = 8192

    def __post_init__(self):
        # Blocking socket; every call gets an explicit timeout instead
        self.socket.setblocking(True)

    @property
    def client_ip(self) -> str:
        if isinstance(self.address, tuple) and self.address:
            return str(self.address[0])
        return str(self.address or "-")

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.monotonic() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read a request head from the socket.

        Returns:
            Everything received up to and including the first blank line.
            Bytes after it (a GET has no body we care about) are dropped.

        Raises:
            RequestTimeoutError: The head did not arrive before the deadline.
            RequestTooLargeError: The head exceeded max_request_size.
            IncompleteRequestError: The client closed before the blank line.
            OSError: The socket failed (reset, etc.).
        """
        self.state = ConnectionState.READING
        deadline = self.created_at + self.read_timeout
        buffer = b""

        while True:
            header_end = buffer.find(HEAD_TERMINATOR)
            if header_end != -1:
                return buffer[:header_end + len(HEAD_TERMINATOR)]

            if len(buffer) > self.max_request_size:
                raise RequestTooLargeError(f"Request head exceeds {self.max_request_size} bytes")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RequestTimeoutError(f"No complete request within {self.read_timeout}s")

            self.socket.settimeout(remaining)
            try:
                chunk = self.socket.recv(self.buffer_size)
            except socket.timeout:
                raise RequestTimeoutError(
                    f"No complete request within {self.read_timeout}s"
                ) from None

            if not chunk:
                raise IncompleteRequestError(
                    "Connection closed before end of request head"
                    if buffer else "Connection closed without a request"
                )

            buffer += chunk

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send the full response.

        Returns:
            True if everything was sent, False if the connection failed.
            Failures are logged, never raised.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.settimeout(self.write_timeout)
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        shutdown(SHUT_WR) sends our FIN so the client sees the end of the
        response; a short, bounded drain then discards whatever the client
        is still sending so the close is not turned into a reset.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.2)
            drained = 0
            while drained <= self.max_request_size:
                chunk = self.socket.recv(self.buffer_size)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # socket.timeout included

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

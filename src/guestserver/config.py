"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable the server has, in one dataclass.

    config = ServerConfig(port=3000, read_timeout=5.0)
    server = Server(config)

or, for containerised deployments:

    config = ServerConfig.from_env()

=============================================================================
SAFETY FLOORS
=============================================================================

Two settings bound what a single client can cost the server:

    max_request_size   Bytes accepted for the request line + headers.
                       A head that grows past this is answered with 400.

    read_timeout       Deadline for the whole head, measured from accept.
                       A client that trickles bytes (slow-loris) or never
                       sends the blank line is answered with 400 and
                       dropped when it expires.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Tuple


LOG_FORMATS = ("text", "json")

ENV_PREFIX = "GUESTSERVER_"


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    Attributes are grouped as network, limits, lifecycle, and logging
    settings. validate() is called by the Server constructor.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    Address to bind to.
    "127.0.0.1" for local development, "0.0.0.0" for all interfaces.
    """

    port: int = 8080
    """Port to listen on. 0 asks the OS for a free port."""

    backlog: int = 128
    """Pending connections the OS queues before refusing new ones."""

    buffer_size: int = 4096
    """Bytes requested per recv() call."""

    # ─────────────────────────────────────────────────────────────────────
    # LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 8192
    """Maximum request head (request line + headers) in bytes."""

    read_timeout: float = 10.0
    """Seconds a client has to deliver its complete request head."""

    write_timeout: float = 10.0
    """Seconds allowed for sending the response."""

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    accept_timeout: float = 0.5
    """
    How long accept() blocks before re-checking for shutdown.
    Also the back-off after a transient accept error.
    """

    shutdown_timeout: float = 5.0
    """Seconds shutdown waits for in-flight connections to finish."""

    allow_live_routes: bool = False
    """
    Permit route registration while listening.
    Off by default: the route table is frozen when listen() starts and
    read without locking. When on, the table is guarded by a
    reader/writer lock.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level name (DEBUG, INFO, WARNING, ERROR)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        GUESTSERVER_HOST              Bind host (default: 127.0.0.1)
        GUESTSERVER_PORT              Bind port (default: 8080)
        GUESTSERVER_READ_TIMEOUT      Request head deadline (default: 10)
        GUESTSERVER_MAX_REQUEST_SIZE  Request head limit (default: 8192)
        GUESTSERVER_LOG_LEVEL         Logging level (default: INFO)
        GUESTSERVER_LOG_FORMAT        text or json (default: text)
        """
        def env(name: str, default: str) -> str:
            return os.getenv(ENV_PREFIX + name, default)

        return cls(
            host=env("HOST", "127.0.0.1"),
            port=int(env("PORT", "8080")),
            read_timeout=float(env("READ_TIMEOUT", "10")),
            max_request_size=int(env("MAX_REQUEST_SIZE", "8192")),
            log_level=env("LOG_LEVEL", "INFO"),
            log_format=env("LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.max_request_size < 16:
            raise ValueError("max_request_size must be >= 16")

        for name in ("read_timeout", "write_timeout", "accept_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")

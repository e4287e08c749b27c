"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Drives one accepted connection from first byte to close. Runs on the
connection's own thread; nothing here is shared with other connections
except the (read-only) route table and parser.

    read ──► parse ──► method? ──► lookup ──► invoke ──► serialize ──► write ──► close
      │        │          │           │          │
      │        │          │           │          └─ raises / bad return / bad body     → 500
      │        │          │           └─ no route                        → 404
      │        │          └─ not GET                                     → 405
      │        └─ malformed request line / target                        → 400
      ├─ deadline, size limit, early EOF                                 → 400
      └─ socket error                                                    → close, no response

Whatever happens, the connection is closed when __call__ returns, and no
exception leaves it: a failure is terminal for this connection only.

=============================================================================
"""

import logging
import time
from typing import Optional, Tuple

from ..accesslog import AccessLogEntry, log_access
from ..config import ServerConfig
from ..errors import HTTPParseError
from ..http.request import HTTPRequest, Method, RequestParser
from ..http.response import (
    HTTPResponse,
    bad_request,
    internal_error,
    method_not_allowed,
    not_found,
)
from ..http.router import RouteTable
from .connection import Connection, ConnectionState


logger = logging.getLogger(__name__)


class ConnectionHandler:
    """
    Callable that serves a single request on a connection, then closes it.

    Usage:
        handler = ConnectionHandler(routes, config)
        threading.Thread(target=handler, args=(conn,)).start()
    """

    def __init__(self, routes: RouteTable, config: Optional[ServerConfig] = None):
        self.routes = routes
        self.config = config or ServerConfig()
        self.parser = RequestParser(max_request_size=self.config.max_request_size)

    def __call__(self, conn: Connection) -> None:
        started = time.monotonic()
        request: Optional[HTTPRequest] = None

        with conn:
            # ─────────────────────────────────────────────────────────────
            # READ
            # ─────────────────────────────────────────────────────────────
            try:
                raw = conn.read_request()
            except HTTPParseError as e:
                logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e.reason}")
                response = bad_request()
            except OSError as e:
                logger.warning(f"[{conn.id}] Read failed from {conn.client_ip}: {e}")
                return
            else:
                # ─────────────────────────────────────────────────────────
                # PARSE + DISPATCH
                # ─────────────────────────────────────────────────────────
                conn.state = ConnectionState.PROCESSING
                request, response = self.dispatch(raw, conn.id)

            # ─────────────────────────────────────────────────────────────
            # WRITE (close happens on leaving the with-block)
            # ─────────────────────────────────────────────────────────────
            payload = response.serialize()
            sent = conn.send_response(payload)

        log_access(
            AccessLogEntry.create(
                connection_id=conn.id,
                client_ip=conn.client_ip,
                request=request,
                status_code=response.status,
                content_length=response.content_length if sent else 0,
                duration=time.monotonic() - started,
            ),
            self.config.log_format,
        )

    def dispatch(
        self, raw: bytes, conn_id: str = "-"
    ) -> Tuple[Optional[HTTPRequest], HTTPResponse]:
        """
        Turn a raw request head into a response.

        Args:
            raw: Bytes of the request head.
            conn_id: Connection id used as log prefix.

        Returns:
            (request, response). request is None when parsing failed.
        """
        try:
            request = self.parser.parse(raw)
        except HTTPParseError as e:
            logger.info(f"[{conn_id}] Bad request: {e.reason}")
            return None, bad_request()

        if request.method is not Method.GET:
            return request, method_not_allowed()

        handler = self.routes.lookup(request.path)
        if handler is None:
            return request, not_found()

        return request, self._invoke(handler, request, conn_id)

    def _invoke(self, handler, request: HTTPRequest, conn_id: str) -> HTTPResponse:
        try:
            result = handler(request.query)
        except Exception:
            logger.exception(f"[{conn_id}] Handler for {request.path} raised")
            return internal_error()

        if not isinstance(result, HTTPResponse):
            logger.error(
                f"[{conn_id}] Handler for {request.path} returned "
                f"{type(result).__name__}, expected HTTPResponse"
            )
            return internal_error()

        # A body that cannot be put on the wire is a handler fault too
        try:
            result.serialize()
        except Exception:
            logger.exception(
                f"[{conn_id}] Response from handler for {request.path} cannot be serialized"
            )
            return internal_error()

        return result

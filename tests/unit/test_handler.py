"""
Unit tests for ConnectionHandler: one request per connection, driven over
a socketpair.
"""

import logging
import socket

import pytest

from guestserver.config import ServerConfig
from guestserver.core.connection import ConnectionState
from guestserver.core.handler import ConnectionHandler
from guestserver.http.response import HTTPResponse
from guestserver.http.router import RouteTable


@pytest.fixture
def routes():
    table = RouteTable()
    table.register("/", lambda query: HTTPResponse(200, "Hello, World!"))
    table.register("/search", lambda query: HTTPResponse(200, repr(query)))
    return table


@pytest.fixture
def handler(routes):
    return ConnectionHandler(routes, ServerConfig())


def serve(handler, connection_pair, read_all, raw: bytes) -> bytes:
    """Send raw bytes, run the handler, return what the client received."""
    conn, client = connection_pair
    client.sendall(raw)
    handler(conn)
    return read_all(client)


class TestConnectionHandler:
    """Tests for the full read → dispatch → write → close pipeline."""

    def test_hello_world(self, handler, connection_pair, read_all):
        """Test the exact bytes of a 200 reply."""
        reply = serve(handler, connection_pair, read_all, b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert reply == b"HTTP/1.1 200 OK\r\nContent-Length: 13\r\n\r\nHello, World!"

    def test_connection_closed_after_reply(self, handler, connection_pair, read_all):
        """Test one request per connection."""
        conn, _ = connection_pair
        serve(handler, connection_pair, read_all, b"GET / HTTP/1.1\r\n\r\n")

        assert conn.state == ConnectionState.CLOSED

    def test_query_passed_to_handler(self, handler, connection_pair, read_all):
        """Test the raw query string reaches the handler."""
        reply = serve(handler, connection_pair, read_all, b"GET /search?q=term HTTP/1.1\r\n\r\n")

        assert reply.endswith(b"'q=term'")

    def test_absent_query_is_none(self, handler, connection_pair, read_all):
        """Test a target without "?" gives the handler None."""
        reply = serve(handler, connection_pair, read_all, b"GET /search HTTP/1.1\r\n\r\n")

        assert reply.endswith(b"None")

    def test_not_found(self, handler, connection_pair, read_all):
        reply = serve(handler, connection_pair, read_all, b"GET /missing HTTP/1.1\r\n\r\n")

        assert reply == b"HTTP/1.1 404 Not Found\r\nContent-Length: 0\r\n\r\n"

    def test_method_not_allowed(self, handler, connection_pair, read_all):
        reply = serve(handler, connection_pair, read_all, b"POST / HTTP/1.1\r\n\r\n")

        assert reply == b"HTTP/1.1 405 Method Not Allowed\r\nContent-Length: 0\r\n\r\n"

    def test_method_checked_before_route(self, handler, connection_pair, read_all):
        """Test a non-GET to an unknown path is 405, not 404."""
        reply = serve(handler, connection_pair, read_all, b"DELETE /missing HTTP/1.1\r\n\r\n")

        assert reply.startswith(b"HTTP/1.1 405 ")

    def test_malformed_request_line(self, handler, connection_pair, read_all):
        reply = serve(handler, connection_pair, read_all, b"GARBAGE\r\n\r\n")

        assert reply == b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n"

    def test_early_eof(self, handler, connection_pair, read_all):
        """Test a client that hangs up mid-head still gets a 400."""
        conn, client = connection_pair
        client.sendall(b"GET / HTTP/1.1\r\n")
        client.shutdown(socket.SHUT_WR)
        handler(conn)

        assert read_all(client).startswith(b"HTTP/1.1 400 ")

    def test_oversized_head(self, handler, connection_pair, read_all):
        """Test a head past the connection's size limit gets a 400."""
        reply = serve(handler, connection_pair, read_all, b"GET /" + b"a" * 4096)

        assert reply.startswith(b"HTTP/1.1 400 ")

    def test_stalled_client(self, handler, connection_pair, read_all):
        """Test a client that never finishes its head gets a 400."""
        conn, _ = connection_pair
        conn.read_timeout = 0.2

        reply = serve(handler, connection_pair, read_all, b"GET / HTTP/1.1\r\n")

        assert reply.startswith(b"HTTP/1.1 400 ")

    def test_handler_exception_is_500(self, routes, connection_pair, read_all, caplog):
        """Test a raising handler becomes a 500 and is logged."""
        def boom(query):
            raise RuntimeError("kaboom")

        routes.register("/boom", boom)
        handler = ConnectionHandler(routes)

        with caplog.at_level(logging.ERROR, logger="guestserver"):
            reply = serve(handler, connection_pair, read_all, b"GET /boom HTTP/1.1\r\n\r\n")

        assert reply == b"HTTP/1.1 500 Internal Server Error\r\nContent-Length: 0\r\n\r\n"
        assert "kaboom" in caplog.text

    def test_wrong_return_type_is_500(self, routes, connection_pair, read_all, caplog):
        """Test a handler returning something other than HTTPResponse."""
        routes.register("/str", lambda query: "not a response")
        handler = ConnectionHandler(routes)

        with caplog.at_level(logging.ERROR, logger="guestserver"):
            reply = serve(handler, connection_pair, read_all, b"GET /str HTTP/1.1\r\n\r\n")

        assert reply.startswith(b"HTTP/1.1 500 ")
        assert "expected HTTPResponse" in caplog.text

    @pytest.mark.parametrize("body", ["\ud800", 42])
    def test_unserializable_body_is_500(self, routes, connection_pair, read_all, caplog, body):
        """Test a response whose body cannot be encoded becomes a 500."""
        routes.register("/bad", lambda query: HTTPResponse(200, body))
        handler = ConnectionHandler(routes)

        with caplog.at_level(logging.ERROR, logger="guestserver"):
            reply = serve(handler, connection_pair, read_all, b"GET /bad HTTP/1.1\r\n\r\n")

        assert reply == b"HTTP/1.1 500 Internal Server Error\r\nContent-Length: 0\r\n\r\n"
        assert "cannot be serialized" in caplog.text

    def test_access_log_written(self, handler, connection_pair, read_all, caplog):
        """Test one access record per connection."""
        with caplog.at_level(logging.INFO, logger="guestserver.access"):
            serve(handler, connection_pair, read_all, b"GET /search?q=1 HTTP/1.1\r\n\r\n")

        records = [r for r in caplog.records if r.name == "guestserver.access"]
        assert len(records) == 1
        assert '"GET /search?q=1 HTTP/1.1" 200' in records[0].getMessage()


class TestDispatch:
    """Tests for ConnectionHandler.dispatch() without any socket."""

    def test_ok(self, handler):
        request, response = handler.dispatch(b"GET / HTTP/1.1\r\n\r\n")

        assert request.path == "/"
        assert response.status == 200

    def test_parse_failure_has_no_request(self, handler):
        request, response = handler.dispatch(b"\r\n\r\n")

        assert request is None
        assert response.status == 400

    def test_lowercase_method_not_get(self, handler):
        """Test method matching is case-sensitive."""
        _, response = handler.dispatch(b"get / HTTP/1.1\r\n\r\n")

        assert response.status == 405

    def test_trailing_slash_is_distinct(self, handler):
        """Test exact path matching."""
        _, response = handler.dispatch(b"GET /search/ HTTP/1.1\r\n\r\n")

        assert response.status == 404

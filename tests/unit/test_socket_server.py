"""
Unit tests for the SocketServer accept loop, using a scripted stand-in for
the listening socket.
"""

import errno
import logging
import socket

import pytest

from guestserver.config import ServerConfig
from guestserver.core import Connection, SocketServer
from guestserver.errors import AcceptError, BindError


class ScriptedListener:
    """
    Listening-socket stand-in whose accept() plays back a script.

    Each step is either an exception to raise or a (socket, address) pair to
    return. Once the script runs out the server is asked to stop.
    """

    def __init__(self, server: SocketServer, steps):
        self.server = server
        self.steps = list(steps)
        self.accept_calls = 0

    def accept(self):
        self.accept_calls += 1
        if not self.steps:
            self.server.shutdown()
            raise socket.timeout()
        step = self.steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture
def socket_server():
    return SocketServer(ServerConfig(port=0, accept_timeout=0.01))


def run_loop(server: SocketServer, steps):
    """Run the accept loop against scripted steps; return accepted connections."""
    accepted = []
    listener = ScriptedListener(server, steps)
    server._socket = listener
    server._running = True
    server._accept_loop(accepted.append)
    return accepted, listener


class TestAcceptLoop:
    """Tests for accept error handling."""

    def test_transient_error_is_logged_and_loop_continues(self, socket_server, caplog):
        """Test a failed accept for one client does not stop the server."""
        server_sock, client_sock = socket.socketpair()
        steps = [
            OSError(errno.ECONNABORTED, "Software caused connection abort"),
            (server_sock, ("127.0.0.1", 50000)),
        ]

        with caplog.at_level(logging.WARNING, logger="guestserver"):
            accepted, listener = run_loop(socket_server, steps)

        assert len(accepted) == 1
        assert isinstance(accepted[0], Connection)
        assert accepted[0].client_ip == "127.0.0.1"
        assert listener.accept_calls == 3
        assert any(
            r.levelno == logging.WARNING and "Accept error" in r.getMessage()
            for r in caplog.records
        )

        accepted[0].close()
        client_sock.close()

    def test_timeout_just_polls(self, socket_server):
        """Test accept timeouts only re-check the running flag."""
        accepted, listener = run_loop(socket_server, [socket.timeout(), socket.timeout()])

        assert accepted == []
        assert listener.accept_calls == 3

    @pytest.mark.parametrize("code", [errno.EBADF, errno.EINVAL, errno.ENOTSOCK])
    def test_fatal_error_raises(self, socket_server, code):
        """Test a broken listening socket ends the loop with AcceptError."""
        with pytest.raises(AcceptError):
            run_loop(socket_server, [OSError(code, "listening socket broken")])

    def test_error_after_shutdown_ends_quietly(self, socket_server):
        """Test an accept error once stopping is not treated as a failure."""
        class ClosingListener:
            def accept(self):
                socket_server.shutdown()
                raise OSError(errno.EBADF, "closed")

        socket_server._socket = ClosingListener()
        socket_server._running = True
        socket_server._accept_loop(lambda conn: None)

        assert not socket_server.is_running


class TestBind:
    """Tests for bind() against real sockets."""

    def test_bind_reports_ephemeral_port(self):
        server = SocketServer(ServerConfig(port=0))
        try:
            host, port = server.bind()
            assert host == "127.0.0.1"
            assert port != 0
            assert server.address == (host, port)
        finally:
            server._socket.close()

    def test_bind_error_keeps_errno(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
            holder.bind(("127.0.0.1", 0))
            holder.listen(1)
            port = holder.getsockname()[1]

            with pytest.raises(BindError) as exc_info:
                SocketServer(ServerConfig(port=port)).bind()

        assert exc_info.value.errno == errno.EADDRINUSE
        assert exc_info.value.address == ("127.0.0.1", port)

    def test_serve_requires_bind(self):
        with pytest.raises(RuntimeError):
            SocketServer(ServerConfig(port=0)).serve(lambda conn: None)

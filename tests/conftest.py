"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Callable, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from guestserver import Server, ServerConfig, HTTPResponse
from guestserver.core import Connection


def _test_config(**overrides) -> ServerConfig:
    settings = dict(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        read_timeout=2.0,
        write_timeout=2.0,
        accept_timeout=0.05,
        shutdown_timeout=2.0,
        log_level="WARNING",
    )
    settings.update(overrides)
    return ServerConfig(**settings)


def _read_all(sock: socket.socket, timeout: float = 5.0) -> bytes:
    """Read from a socket until the peer closes it."""
    sock.settimeout(timeout)
    chunks = []
    while True:
        try:
            chunk = sock.recv(4096)
        except ConnectionResetError:
            break
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return _test_config()


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def read_all() -> Callable[..., bytes]:
    """Helper: read a socket to EOF."""
    return _read_all


class ServerRunner:
    """Runs Server.listen() in a background thread."""

    def __init__(self, server: Server):
        self.server = server
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def start(self, address=0) -> "ServerRunner":
        """Start listening and wait for the socket to be bound."""
        def run():
            try:
                self.server.listen(address)
            except BaseException as e:
                self.error = e

        self._thread = threading.Thread(target=run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            self._thread.join(timeout=5.0)
            raise RuntimeError(f"Server failed to start: {self.error!r}")
        return self

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes on a fresh connection and return the full reply."""
        with socket.create_connection(self.address, timeout=timeout) as sock:
            sock.sendall(raw)
            return _read_all(sock, timeout)

    def get(self, target: str) -> bytes:
        return self.request(f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode())

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def make_server() -> Generator[Callable[..., Server], None, None]:
    """
    Factory for servers with test settings. Keyword arguments override
    ServerConfig fields.
    """
    def factory(**overrides) -> Server:
        return Server(_test_config(**overrides))
    yield factory


@pytest.fixture
def run_server() -> Generator[Callable[[Server], ServerRunner], None, None]:
    """Start a server in the background; every started server is stopped on teardown."""
    runners: List[ServerRunner] = []

    def start(server: Server, address=0) -> ServerRunner:
        runner = ServerRunner(server).start(address)
        runners.append(runner)
        return runner

    yield start

    for runner in runners:
        runner.stop()


@pytest.fixture
def hello_server(make_server, run_server) -> ServerRunner:
    """Server with "/" → Hello, World! and "/search" echoing its query."""
    server = make_server()

    @server.get("/")
    def home(query):
        return HTTPResponse(200, "Hello, World!")

    @server.get("/search")
    def search(query):
        return HTTPResponse(200, repr(query))

    return run_server(server)


@pytest.fixture
def connection_pair() -> Generator[Tuple[Connection, socket.socket], None, None]:
    """
    A Connection wrapping one end of a socketpair, plus the client end.
    Lets the per-connection pipeline run without a listening socket.
    """
    server_sock, client_sock = socket.socketpair()
    conn = Connection(
        socket=server_sock,
        address=("127.0.0.1", 40000),
        read_timeout=2.0,
        write_timeout=2.0,
        max_request_size=1024,
    )

    yield conn, client_sock

    conn.close()
    client_sock.close()

"""
=============================================================================
HTTP SERVER
=============================================================================

The host-facing object: register GET handlers, then listen.

    server = new_server()

    @server.get("/")
    def home(query):
        return HTTPResponse(200, "Hello, World!")

    server.get("/search", lambda query: HTTPResponse(200, query or ""))

    server.listen(8080)          # blocks until shutdown()

=============================================================================
LIFECYCLE
=============================================================================

    CREATED ──listen()──► LISTENING ──shutdown()──► STOPPED
       │                                               ▲
       ├──listen() fails to bind (BindError) ──────────┤
       └──shutdown() before listen() ──────────────────┘

    CREATED     Routes may be registered.
    LISTENING   Socket bound, accept loop running, route table frozen
                (unless allow_live_routes).
    STOPPED     Socket closed; terminal. A stopped server is not restarted.

=============================================================================
CONCURRENCY
=============================================================================

listen() runs the accept loop on the calling thread. Every accepted
connection gets its own daemon thread running a ConnectionHandler, so a
slow handler only ever holds up its own client. Connections share nothing
but the route table, which is read-only while listening.

=============================================================================
"""

import dataclasses
import logging
import threading
import time
from enum import Enum
from typing import Optional, Set, Tuple, Union

from .config import ServerConfig
from .core import Connection, SocketServer
from .core.handler import ConnectionHandler
from .errors import BindError, ServerStateError
from .http.router import Handler, RouteTable


logger = logging.getLogger(__name__)

Address = Union[int, str, Tuple[str, int], None]


class ServerState(Enum):
    CREATED = "created"
    LISTENING = "listening"
    STOPPED = "stopped"


class Server:
    """
    Minimal HTTP/1.1 server dispatching GET requests by exact path.

    Features:
    - Exact-match routing of GET requests to handler(query) callables
    - Thread per connection, one request per connection
    - 400 / 404 / 405 / 500 produced by the server itself
    - Bounded request reading (size limit and idle deadline)
    - Graceful shutdown from another thread or SIGTERM/SIGINT
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Uses defaults if not provided.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._routes = RouteTable(live=self.config.allow_live_routes)

        self._state = ServerState.CREATED
        self._state_changed = threading.Condition()
        self._shutdown_requested = False

        self._socket_server: Optional[SocketServer] = None
        self._handler: Optional[ConnectionHandler] = None

        # Live connection threads, joined on shutdown
        self._threads: Set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def routes(self) -> RouteTable:
        return self._routes

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) while listening, else the configured address."""
        if self._socket_server is not None:
            return self._socket_server.address
        return self.config.address

    @property
    def active_connections(self) -> int:
        with self._threads_lock:
            return len(self._threads)

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def get(self, path: str, handler: Optional[Handler] = None):
        """
        Register a handler for GET requests to exactly this path.

        Registering a path twice replaces the first handler.

        Works as a plain call or as a decorator:

            server.get("/", home)

            @server.get("/search")
            def search(query):
                ...

        Raises:
            ValueError: If path does not start with "/" or contains "?".
            TypeError: If handler is not callable.
            RouteTableClosedError: If the server is already listening and
                                   live routes are not enabled.
        """
        if handler is None:
            def decorator(func: Handler) -> Handler:
                self._routes.register(path, func)
                return func
            return decorator

        self._routes.register(path, handler)
        return handler

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def listen(self, address_or_port: Address = None) -> None:
        """
        Bind and serve until shutdown(). Blocks the calling thread.

        Args:
            address_or_port: A port number (bound on config.host), a
                             "host:port" string, a (host, port) tuple, or
                             None for the configured address.

        Raises:
            ServerStateError: If the server is not in the CREATED state.
            BindError: If the address cannot be bound; the server is then
                       STOPPED and never reaches LISTENING.
            AcceptError: If the listening socket fails irrecoverably.
        """
        host, port = resolve_address(address_or_port, self.config.host, self.config.port)

        with self._state_changed:
            if self._state is not ServerState.CREATED:
                raise ServerStateError(f"Cannot listen: server is {self._state.value}")
            self.config = dataclasses.replace(self.config, host=host, port=port)
            self._socket_server = SocketServer(self.config)

        self._setup_logging()

        # Snapshot for every connection thread from here on
        self._routes.close()
        self._handler = ConnectionHandler(self._routes, self.config)

        try:
            self._socket_server.bind()
        except BindError:
            self._set_state(ServerState.STOPPED)
            raise

        with self._state_changed:
            if self._shutdown_requested:
                self._socket_server.shutdown()
            self._set_state(ServerState.LISTENING)

        try:
            self._socket_server.serve(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self, wait: bool = False, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting connections. Thread-safe and idempotent.

        The accept loop notices within config.accept_timeout seconds;
        in-flight connections get up to config.shutdown_timeout seconds to
        finish.

        Args:
            wait: Block until the server is STOPPED. Do not pass True from
                  inside a handler.
            timeout: Upper bound for the wait.

        Returns:
            True if the server is stopped (or stopping, when wait is False).
        """
        with self._state_changed:
            self._shutdown_requested = True
            if self._state is ServerState.CREATED and self._socket_server is None:
                self._set_state(ServerState.STOPPED)
                return True
            socket_server = self._socket_server

        if socket_server is not None:
            socket_server.shutdown()

        if wait:
            return self.wait_until_stopped(timeout)
        return True

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """
        Block until listen() has bound the socket (or failed to).

        Returns:
            True if the server is LISTENING, False on timeout or failure.
        """
        with self._state_changed:
            self._state_changed.wait_for(
                lambda: self._state is not ServerState.CREATED, timeout
            )
            return self._state is ServerState.LISTENING

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        with self._state_changed:
            return self._state_changed.wait_for(
                lambda: self._state is ServerState.STOPPED, timeout
            )

    def _set_state(self, state: ServerState) -> None:
        with self._state_changed:
            self._state = state
            self._state_changed.notify_all()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("guestserver").setLevel(level)

    def _shutdown(self):
        """Wait for in-flight connections, then mark the server STOPPED."""
        deadline = time.monotonic() + self.config.shutdown_timeout

        with self._threads_lock:
            pending = [t for t in self._threads if t is not threading.current_thread()]

        for thread in pending:
            thread.join(max(0.0, deadline - time.monotonic()))

        leftover = self.active_connections
        if leftover:
            logger.warning(f"{leftover} connection(s) still running at shutdown")

        self._set_state(ServerState.STOPPED)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION DISPATCH
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Start a thread for a freshly accepted connection.

        Called on the accept thread, so it returns as soon as the thread is
        started.
        """
        thread = threading.Thread(
            target=self._run_connection,
            args=(conn,),
            name=f"guestserver-conn-{conn.id}",
            daemon=True,
        )

        with self._threads_lock:
            self._threads.add(thread)

        try:
            thread.start()
        except RuntimeError as e:
            with self._threads_lock:
                self._threads.discard(thread)
            logger.error(f"[{conn.id}] Could not start connection thread: {e}")
            conn.close()

    def _run_connection(self, conn: Connection):
        try:
            self._handler(conn)
        except Exception:
            # ConnectionHandler resolves its own failures; this is the last
            # line before the thread dies
            logger.exception(f"[{conn.id}] Unhandled error in connection thread")
            conn.close()
        finally:
            with self._threads_lock:
                self._threads.discard(threading.current_thread())

    def __repr__(self) -> str:
        host, port = self.address
        return f"Server({host}:{port}, {self._state.value}, {len(self._routes)} routes)"


def resolve_address(
    address_or_port: Address, default_host: str, default_port: int
) -> Tuple[str, int]:
    """
    Normalise the argument to listen() into (host, port).

        None                → (default_host, default_port)
        8080 / "8080"       → (default_host, 8080)
        "0.0.0.0:8080"      → ("0.0.0.0", 8080)
        "[::1]:8080"        → ("::1", 8080)
        ("localhost", 8080) → ("localhost", 8080)

    Raises:
        ValueError: For a malformed address or an out-of-range port.
        TypeError: For an unsupported argument type.
    """
    if address_or_port is None:
        host, port = default_host, default_port
    elif isinstance(address_or_port, bool):
        raise TypeError(f"Invalid address: {address_or_port!r}")
    elif isinstance(address_or_port, int):
        host, port = default_host, address_or_port
    elif isinstance(address_or_port, str):
        text = address_or_port.strip()
        if text.isdigit():
            host, port = default_host, int(text)
        else:
            host, sep, port_text = text.rpartition(":")
            if not sep or not host or not port_text.isdigit():
                raise ValueError(f"Address must be 'host:port', got {address_or_port!r}")
            host, port = host.strip("[]"), int(port_text)
    elif isinstance(address_or_port, (tuple, list)) and len(address_or_port) == 2:
        host, port = str(address_or_port[0]), int(address_or_port[1])
    else:
        raise TypeError(f"Invalid address: {address_or_port!r}")

    if not 0 <= port < 65536:
        raise ValueError(f"Invalid port: {port}. Must be 0-65535.")
    return host, port


def new_server(config: Optional[ServerConfig] = None) -> Server:
    """
    Create a server with an empty route table.

    Args:
        config: Server configuration.

    Returns:
        A Server in the CREATED state.
    """
    return Server(config)

"""
=============================================================================
SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Knows nothing about HTTP:
every accepted socket is wrapped in a Connection and handed to a callback,
which is expected to return immediately (the Server starts a thread).

    start(callback)
        │
        ├──► _create_socket()   socket(), SO_REUSEADDR, TCP_NODELAY
        ├──► bind()             OSError → BindError (raised to caller)
        ├──► listen(backlog)
        ├──► _setup_signals()   SIGTERM/SIGINT → shutdown() (main thread only)
        │
        └──► _accept_loop()     blocks here until shutdown()
                 │
                 └──► while running:
                          accept()        timeout → re-check running flag
                          Connection()    wrap client socket
                          callback(conn)  hand off

=============================================================================
ACCEPT ERRORS
=============================================================================

A failed accept() usually concerns a single connection attempt (client
reset during the handshake, fd limit hit for a moment). Those are logged
and the loop carries on after a short back-off. Only errors meaning the
listening socket itself is unusable end the loop, as AcceptError.

=============================================================================
"""

import errno
import socket
import signal
import logging
import threading
import time
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import AcceptError, BindError
from .connection import Connection


logger = logging.getLogger(__name__)

# errno values that mean the listening socket is broken, not the client
_FATAL_ACCEPT_ERRNOS = {errno.EBADF, errno.EINVAL, errno.ENOTSOCK}


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            threading.Thread(target=serve, args=(conn,)).start()

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration containing host, port, backlog, etc.

        The socket is created lazily in start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None

        self._running = False
        self._stop_requested = False

        # Set once the socket is listening; cleared never
        self._listening_event = threading.Event()
        # Set once the accept loop has exited and the socket is closed
        self._shutdown_event = threading.Event()

        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port). Before binding this is the configured address;
        afterwards the real one, so a requested port 0 shows the OS's choice.
        """
        if self._bound_address is not None:
            return self._bound_address
        return self.config.address

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Rebinding a port in TIME_WAIT is fine; no SO_REUSEPORT, so a
        # second live server on the same port still fails to bind
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Send small responses immediately
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # Periodic wake-up so the accept loop notices shutdown
        sock.settimeout(self.config.accept_timeout)

        return sock

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers that trigger a graceful shutdown.

        Python only allows this from the main thread; a server started from
        any other thread (tests, embedding) leaves signal handling alone.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def bind(self) -> Tuple[str, int]:
        """
        Create the socket, bind it and start listening.

        Returns:
            The bound (host, port).

        Raises:
            BindError: If the address cannot be bound. The socket is closed.
        """
        self._socket = self._create_socket()
        address = self.config.address

        try:
            self._socket.bind(address)
            self._socket.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {address[0]}:{address[1]}: {e}")
            self._socket.close()
            self._socket = None
            raise BindError(address, e) from e

        self._bound_address = self._socket.getsockname()[:2]
        return self._bound_address

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind and accept connections. Blocks until shutdown() is called.

        Args:
            connection_handler: Called with each new Connection. Must not
                                block on request handling.

        Raises:
            BindError: If binding fails (nothing is left open).
            AcceptError: If the listening socket fails irrecoverably.
        """
        self.bind()
        self.serve(connection_handler)

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop on an already bound socket (see bind()).
        Blocks until shutdown() is called; the socket is closed on return.
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._listening_event.set()

        try:
            # shutdown() may have arrived between bind and here
            if not self._stop_requested:
                self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break  # Socket closed by shutdown
                if e.errno in _FATAL_ACCEPT_ERRNOS:
                    logger.error(f"Listening socket failed: {e}")
                    raise AcceptError(f"Listening socket failed: {e}") from e
                logger.warning(f"Accept error (continuing): {e}")
                time.sleep(self.config.accept_timeout)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    read_timeout=self.config.read_timeout,
                    write_timeout=self.config.write_timeout,
                    max_request_size=self.config.max_request_size,
                )
            except OSError as e:
                logger.warning(f"Could not set up connection from {client_address[0]}: {e}")
                client_socket.close()
                continue

            connection_handler(conn)

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the socket is listening.

        Returns:
            True once listening, False on timeout.
        """
        return self._listening_event.wait(timeout)

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe to call from any thread, from a
        signal handler, and more than once.
        """
        if self._stop_requested:
            return
        logger.info("Shutting down socket server...")
        self._stop_requested = True
        self._running = False

    def _cleanup(self):
        self._running = False
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._shutdown_event.set()
        logger.info("Socket server stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the accept loop to exit and the socket to close.

        Returns:
            True if shutdown completed, False on timeout.
        """
        return self._shutdown_event.wait(timeout)

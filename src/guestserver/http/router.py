"""
=============================================================================
ROUTE TABLE
=============================================================================

Maps exact request paths to handler functions.

    "/"        ──►  home(query)
    "/search"  ──►  search(query)
    "/health"  ──►  health(query)

Matching is a plain dictionary lookup: case-sensitive, no trailing-slash
normalisation, no path parameters or wildcards. "/Search" and "/search/"
are both different routes from "/search".

=============================================================================
LIFECYCLE
=============================================================================

    open ──── register(), register(), ... ────► close() ──► read-only

The server calls close() when listen() begins. From then on every
connection thread reads the dict without taking a lock; register() raises
RouteTableClosedError.

A table created with live=True is never closed. Lookups then take the read
side of a ReadWriteLock and registrations the write side, so routes may be
added while the server is running.

=============================================================================
"""

from typing import Callable, Dict, List, Optional

from ..core.rwlock import ReadWriteLock
from ..errors import RouteTableClosedError
from .response import HTTPResponse


# Handler: takes the raw query string (None when the target had no "?")
Handler = Callable[[Optional[str]], HTTPResponse]


class RouteTable:
    """
    Exact-match path → handler mapping.

    Usage:
        routes = RouteTable()
        routes.register("/", home)
        routes.close()

        handler = routes.lookup("/")   # home
        handler = routes.lookup("/x")  # None
    """

    def __init__(self, live: bool = False):
        """
        Args:
            live: Allow registration after close() is requested, guarding
                  the table with a reader/writer lock.
        """
        self._routes: Dict[str, Handler] = {}
        self._closed = False
        self._lock: Optional[ReadWriteLock] = ReadWriteLock() if live else None

    @property
    def is_live(self) -> bool:
        return self._lock is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, path: str, handler: Handler) -> None:
        """
        Store a handler for a path, replacing any earlier one.

        Args:
            path: Exact path, starting with "/" and without a query string.
            handler: Callable taking the optional query string and returning
                     an HTTPResponse.

        Raises:
            ValueError: If the path is empty, relative, or has a "?".
            TypeError: If the handler is not callable.
            RouteTableClosedError: If the table has been closed.
        """
        _validate_path(path)
        if not callable(handler):
            raise TypeError(f"Handler for {path!r} must be callable, got {handler!r}")

        if self._lock is not None:
            with self._lock.write_locked():
                self._routes[path] = handler
            return

        if self._closed:
            raise RouteTableClosedError(path)
        self._routes[path] = handler

    def close(self) -> None:
        """
        Freeze the table. A no-op for live tables, which stay writable.
        """
        if self._lock is None:
            self._closed = True

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def lookup(self, path: str) -> Optional[Handler]:
        """
        Find the handler registered for exactly this path.

        Returns:
            The handler, or None if the path is not registered.
        """
        if self._lock is not None:
            with self._lock.read_locked():
                return self._routes.get(path)
        return self._routes.get(path)

    def paths(self) -> List[str]:
        """Registered paths, sorted."""
        if self._lock is not None:
            with self._lock.read_locked():
                return sorted(self._routes)
        return sorted(self._routes)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.lookup(path) is not None

    def __len__(self) -> int:
        return len(self.paths())

    def __repr__(self) -> str:
        state = "live" if self.is_live else ("closed" if self._closed else "open")
        return f"RouteTable({len(self)} routes, {state})"


def _validate_path(path: str) -> None:
    if not isinstance(path, str) or not path.startswith("/"):
        raise ValueError(f"Route path must start with '/': {path!r}")
    if "?" in path:
        raise ValueError(f"Route path must not contain a query string: {path!r}")

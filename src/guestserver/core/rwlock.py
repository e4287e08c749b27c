"""
Reader/writer lock for route tables that accept registrations while the
server is listening.

Any number of connection threads may look up routes at once; a
registration waits until they are done and holds the table alone.
Writer-preferring: once a writer is waiting, new readers queue behind it,
so a steady stream of lookups cannot starve a registration.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """Multiple readers OR one exclusive writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def reader_count(self) -> int:
        """Number of threads currently holding the read side."""
        with self._cond:
            return self._readers

    @property
    def is_writing(self) -> bool:
        """True while a writer holds the lock."""
        with self._cond:
            return self._writer

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_read() without a matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() without a matching acquire_write()")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """
        Hold the read side for the duration of a with-block.

            with lock.read_locked():
                handler = routes.get(path)
        """
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the write side for the duration of a with-block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    def __repr__(self) -> str:
        if self._writer:
            state = "writing"
        elif self._readers:
            state = f"{self._readers} readers"
        else:
            state = "idle"
        return f"ReadWriteLock({state})"

"""Advisory download lock: avoids redundant downloads across threads and processes.

Correctness never depends on this lock (promotion is an atomic rename); it
only keeps two workers from fetching the same file at the same time.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


class _SharedLock:
    """A thread lock plus the number of threads holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


# Per-process thread locks, keyed by lock file path; an entry lives while it has users
_thread_locks: dict[str, _SharedLock] = {}
_thread_locks_guard = threading.Lock()


@contextmanager
def _thread_lock(path: Path) -> Iterator[None]:
    key = os.path.normcase(os.path.abspath(path))
    with _thread_locks_guard:
        shared = _thread_locks.get(key)
        if shared is None:
            shared = _thread_locks[key] = _SharedLock()
        shared.users += 1
    try:
        with shared.lock:
            yield
    finally:
        with _thread_locks_guard:
            shared.users -= 1
            if shared.users == 0:
                del _thread_locks[key]


try:
    import fcntl

    @contextmanager
    def file_lock(path: Path) -> Iterator[None]:
        """Hold an exclusive advisory lock on path for the duration of the block."""
        with _thread_lock(path):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_CREAT | os.O_RDWR | getattr(os, "O_CLOEXEC", 0))
            try:
                fcntl.flock(fd, fcntl.LOCK_EX)
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
                os.close(fd)

except ImportError:
    import msvcrt

    @contextmanager
    def file_lock(path: Path) -> Iterator[None]:
        """Hold an exclusive advisory lock on path for the duration of the block."""
        with _thread_lock(path):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_CREAT | os.O_RDWR)
            os.set_inheritable(fd, False)
            try:
                msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
                yield
            finally:
                msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
                os.close(fd)

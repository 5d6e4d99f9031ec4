"""Exclusive file locking for the append-only call journal.

Uses ``fcntl.flock`` on POSIX and ``msvcrt.locking`` on Windows. Locks are
advisory on POSIX: every writer must go through ``locked_file``.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TextIO

# msvcrt.locking() needs a byte count; one byte at offset 0 acts as the file lock.
_WINDOWS_LOCK_BYTES = 1


def _lock_functions() -> tuple[Callable[[TextIO], None], Callable[[TextIO], None]]:
    if os.name == "nt":
        import msvcrt

        def acquire(handle: TextIO) -> None:
            msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, _WINDOWS_LOCK_BYTES)  # type: ignore[attr-defined]

        def release(handle: TextIO) -> None:
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, _WINDOWS_LOCK_BYTES)  # type: ignore[attr-defined]

        return acquire, release

    import fcntl

    def acquire(handle: TextIO) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)

    def release(handle: TextIO) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    return acquire, release


_acquire, _release = _lock_functions()


@contextmanager
def locked_file(path: Path) -> Iterator[TextIO]:
    """Open ``path`` in ``a+`` mode holding an exclusive lock.

    The handle is positioned at end of file once the lock is held.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("a+", encoding="utf-8", newline="")
    try:
        handle.seek(0)
        _acquire(handle)
        handle.seek(0, os.SEEK_END)
        yield handle
    finally:
        try:
            handle.seek(0)
            _release(handle)
        finally:
            handle.close()

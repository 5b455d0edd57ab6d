from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class FileLockRegistry:
    """Exclusive per-file locks keyed by absolute path.

    Entries are created on first use and kept until ``discard`` is called.
    Locks for different paths are independent.
    """

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @staticmethod
    def _key(path: Path | str) -> str:
        return str(Path(path).absolute())

    def lock_for(self, path: Path | str) -> threading.Lock:
        key = self._key(path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, path: Path | str) -> Iterator[None]:
        lock = self.lock_for(path)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def discard(self, path: Path | str) -> None:
        with self._guard:
            self._locks.pop(self._key(path), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._guard:
            return self._key(path) in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

"""Per-key mutual exclusion."""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLock:
    """Hands out one lock per key; different keys never contend.

    Locks are reference counted and dropped once no caller holds or waits
    on them, so the registry does not grow with every key ever seen.
    ``hold_all`` excludes every key at once for whole-registry work.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._idle = threading.Condition(self._registry_lock)
        self._exclusive = False
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._refcounts: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._idle:
            while self._exclusive:
                self._idle.wait()
            lock = self._locks.setdefault(key, threading.Lock())
            self._refcounts[key] = self._refcounts.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._idle:
                self._refcounts[key] -= 1
                if self._refcounts[key] == 0:
                    del self._refcounts[key]
                    del self._locks[key]
                    if not self._locks:
                        self._idle.notify_all()

    @contextmanager
    def hold_all(self) -> Iterator[None]:
        """Wait for every key to be released and keep new holders out."""
        with self._idle:
            while self._exclusive:
                self._idle.wait()
            self._exclusive = True
            while self._locks:
                self._idle.wait()
        try:
            yield
        finally:
            with self._idle:
                self._exclusive = False
                self._idle.notify_all()

    def active_keys(self) -> int:
        """Number of keys currently held or awaited."""
        with self._idle:
            return len(self._locks)

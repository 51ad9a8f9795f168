"""Per-key lock registry.

Writers that touch the same key (an alert id, a subscription scope)
serialize on that key's lock; writers on unrelated keys never contend.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLocks:
    """Hands out one re-entrant lock per key, created on first use."""

    def __init__(self):
        self._locks: Dict[Hashable, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock_for(self, key: Hashable) -> threading.RLock:
        # Guard only covers creation, held for a dict lookup at most
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self.lock_for(key):
            yield

    def __len__(self) -> int:
        return len(self._locks)

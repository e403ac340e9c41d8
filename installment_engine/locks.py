"""
Keyed Lock Registry

One re-entrant lock per key (plan id, customer id). Writers that touch both a
plan and a customer ledger always take the plan lock first. A key's lock lives
only while some caller holds a reference to it.
"""

import threading
import weakref
from contextlib import contextmanager


class KeyedLocks:
    """Lazily created re-entrant lock per key"""

    def __init__(self, name: str):
        self.name = name
        self._locks: "weakref.WeakValueDictionary[str, threading.RLock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def get(self, key: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, key: str):
        lock = self.get(key)
        with lock:
            yield

"""
RouterLockRegistry -- one reentrant mutex per router and per fleet.

Every public operation on a router runs while holding that router's mutex,
so no two operations on one router interleave their read-modify-write of
the balance.  Operations that touch a fleet's active list or fee ledger
take the fleet mutex after the router mutex.  A sweep holds at most one
router mutex at a time and never waits for it: a router whose mutex is
taken is reported busy and skipped.

Lock order: router mutex -> fleet mutex -> database transaction.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID


def fleet_lock_key(fleet_id: UUID | str) -> str:
    """Registry key for a fleet mutex; distinct from every router key."""
    return f"fleet:{fleet_id}"


class RouterLockRegistry:
    """Lazily created ``threading.RLock`` per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: UUID | str) -> threading.RLock:
        name = str(key)
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.RLock()
                self._locks[name] = lock
            return lock

    @contextmanager
    def hold(self, key: UUID | str) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield

    @contextmanager
    def try_hold(self, key: UUID | str, timeout: float = 0.0) -> Iterator[bool]:
        """
        Attempt the key's mutex, waiting at most ``timeout`` seconds.

        Yields whether the mutex was acquired; it is released on exit only
        in that case.
        """
        lock = self.lock_for(key)
        acquired = lock.acquire(timeout=timeout) if timeout > 0 else lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

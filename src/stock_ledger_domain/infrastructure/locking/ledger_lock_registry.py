"""Per-ledger exclusive locks for in-process writers."""

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

logger = logging.getLogger(__name__)


class _HeldLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = Lock()
        self.holders = 0


class LedgerLockRegistry:
    """
    Hands out one lock per ledger key. Commands on the same ledger serialize; commands on
    different ledgers never contend. Readers don't take these locks.

    Entries are counted by the callers holding or waiting on them and dropped when the
    last one leaves, so the registry only grows with the ledgers currently in use.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _HeldLock] = {}
        self._registry_lock = Lock()

    def _checkout(self, key: str) -> _HeldLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = _HeldLock()
                self._locks[key] = entry
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _HeldLock) -> None:
        with self._registry_lock:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(key, entry)

    @staticmethod
    def pair_key(vendor_id: str, product_id: str) -> str:
        """Key used before a ledger id exists (first purchase of a pair)."""
        return f"pair:{vendor_id}:{product_id}"

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._registry_lock:
            return len(self._locks)

# tests/test_stock_ledger_domain/test_infrastructure/test_ledger_lock_registry.py
"""Tests for per-ledger locking."""

import threading

from src.stock_ledger_domain.infrastructure.locking.ledger_lock_registry import LedgerLockRegistry


def test_registry_counts_keys_in_use() -> None:
    registry = LedgerLockRegistry()

    with registry.hold("ledger-1"):
        with registry.hold("ledger-2"):
            assert len(registry) == 2
        assert len(registry) == 1

    assert len(registry) == 0


def test_released_keys_are_evicted() -> None:
    registry = LedgerLockRegistry()

    for index in range(100):
        with registry.hold(f"ledger-{index}"):
            pass

    assert len(registry) == 0


def test_entry_kept_while_another_caller_waits() -> None:
    registry = LedgerLockRegistry()
    waiting = threading.Event()
    acquired = threading.Event()

    def worker() -> None:
        waiting.set()
        with registry.hold("ledger-1"):
            acquired.set()

    with registry.hold("ledger-1"):
        thread = threading.Thread(target=worker)
        thread.start()
        waiting.wait(timeout=2)
        assert not acquired.is_set()
    thread.join(timeout=2)

    assert acquired.is_set()
    assert len(registry) == 0


def test_lock_released_after_exception() -> None:
    registry = LedgerLockRegistry()

    try:
        with registry.hold("ledger-1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    acquired = threading.Event()

    def worker() -> None:
        with registry.hold("ledger-1"):
            acquired.set()

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join(timeout=2)
    assert acquired.is_set()


def test_same_ledger_commands_serialize() -> None:
    registry = LedgerLockRegistry()
    counter = {"value": 0}

    def increment() -> None:
        for _ in range(500):
            with registry.hold("ledger-1"):
                current = counter["value"]
                counter["value"] = current + 1

    threads = [threading.Thread(target=increment) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert counter["value"] == 2000


def test_other_ledger_is_not_blocked() -> None:
    registry = LedgerLockRegistry()
    acquired = threading.Event()

    def worker() -> None:
        with registry.hold("ledger-2"):
            acquired.set()

    with registry.hold("ledger-1"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join(timeout=2)

    assert acquired.is_set()


def test_pair_key() -> None:
    assert LedgerLockRegistry.pair_key("vendor-1", "product-1") == "pair:vendor-1:product-1"

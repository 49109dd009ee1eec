"""In-process implementation of the Stock Ledger repository (local runs and tests)."""

import copy
import logging
from datetime import datetime
from threading import Lock
from typing import Iterator, Optional

from src.common.exceptions.custom_exceptions import DuplicateLedgerError, OptimisticConflictError
from src.stock_ledger_domain.domain.entities.enums import LedgerStatus, LotStatus
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger
from src.stock_ledger_domain.domain.repositories.stock_ledger_repository import IStockLedgerRepository

logger = logging.getLogger(__name__)

_ATTENTION_STATUSES = (LedgerStatus.LOW_STOCK, LedgerStatus.OUT_OF_STOCK, LedgerStatus.OVERSTOCKED)


class InMemoryStockLedgerRepository(IStockLedgerRepository):
    """
    Stores serialized documents rather than live objects so every load is an independent
    snapshot, the same as reading from the database.
    """

    def __init__(self) -> None:
        self._documents: dict[str, tuple[int, dict]] = {}
        self._pairs: dict[tuple[str, str], str] = {}
        self._lock = Lock()

    def add(self, ledger: StockLedger) -> None:
        with self._lock:
            pair = (ledger.vendor_id, ledger.product_id)
            if pair in self._pairs:
                raise DuplicateLedgerError(ledger.vendor_id, ledger.product_id)
            ledger.version = 1
            self._documents[ledger.ledger_id] = (ledger.version, ledger.to_dict())
            self._pairs[pair] = ledger.ledger_id

    def save(self, ledger: StockLedger) -> None:
        with self._lock:
            stored = self._documents.get(ledger.ledger_id)
            if stored is None or stored[0] != ledger.version:
                raise OptimisticConflictError(ledger.ledger_id, ledger.version)
            ledger.version += 1
            self._documents[ledger.ledger_id] = (ledger.version, ledger.to_dict())

    def _load(self, ledger_id: str) -> Optional[StockLedger]:
        stored = self._documents.get(ledger_id)
        if stored is None:
            return None
        version, document = stored
        return StockLedger.from_dict(copy.deepcopy(document), version=version)

    def get_by_id(self, ledger_id: str) -> Optional[StockLedger]:
        with self._lock:
            return self._load(ledger_id)

    def get_by_vendor_product(self, vendor_id: str, product_id: str) -> Optional[StockLedger]:
        with self._lock:
            ledger_id = self._pairs.get((vendor_id, product_id))
            return self._load(ledger_id) if ledger_id else None

    def list_by_vendor(self, vendor_id: str, statuses: Optional[list[LedgerStatus]] = None) -> list[StockLedger]:
        with self._lock:
            ledgers = [
                self._load(ledger_id) for (vendor, _), ledger_id in self._pairs.items() if vendor == vendor_id
            ]
        if statuses is not None:
            ledgers = [ledger for ledger in ledgers if ledger.status in statuses]
        return ledgers

    def list_ledger_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)

    def iter_needing_attention(self, expiring_before: datetime, batch_size: int = 50) -> Iterator[list[StockLedger]]:
        batch: list[StockLedger] = []
        for ledger_id in self.list_ledger_ids():
            ledger = self.get_by_id(ledger_id)
            if ledger is None or not self._needs_attention(ledger, expiring_before):
                continue
            batch.append(ledger)
            if len(batch) >= batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    @staticmethod
    def _needs_attention(ledger: StockLedger, expiring_before: datetime) -> bool:
        if ledger.status in _ATTENTION_STATUSES:
            return True
        return any(
            lot.status is LotStatus.ACTIVE and lot.expiry_date is not None and lot.expiry_date <= expiring_before
            for lot in ledger.lots
        )

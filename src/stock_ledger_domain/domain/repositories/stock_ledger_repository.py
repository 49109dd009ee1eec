# src/stock_ledger_domain/domain/repositories/stock_ledger_repository.py
"""Stock Ledger repository interface."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterator, Optional

from src.stock_ledger_domain.domain.entities.enums import LedgerStatus
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger


class IStockLedgerRepository(ABC):

    @abstractmethod
    def add(self, ledger: StockLedger) -> None:
        """Inserts a new ledger. Raises DuplicateLedgerError if the vendor/product pair exists."""
        pass

    @abstractmethod
    def save(self, ledger: StockLedger) -> None:
        """Persists changes to an existing ledger. Raises OptimisticConflictError on a stale version."""
        pass

    @abstractmethod
    def get_by_id(self, ledger_id: str) -> Optional[StockLedger]:
        """Retrieves a ledger by id."""
        pass

    @abstractmethod
    def get_by_vendor_product(self, vendor_id: str, product_id: str) -> Optional[StockLedger]:
        """Retrieves the ledger for a vendor/product pair."""
        pass

    @abstractmethod
    def list_by_vendor(self, vendor_id: str, statuses: Optional[list[LedgerStatus]] = None) -> list[StockLedger]:
        """Retrieves a vendor's ledgers, optionally filtered by status."""
        pass

    @abstractmethod
    def list_ledger_ids(self) -> list[str]:
        """Retrieves every ledger id."""
        pass

    @abstractmethod
    def iter_needing_attention(self, expiring_before: datetime, batch_size: int = 50) -> Iterator[list[StockLedger]]:
        """
        Yields batches of ledgers that are low, out of stock or overstocked, or hold an
        active lot expiring before `expiring_before`.
        """
        pass

# src/listing_domain/domain/repositories/listing_repository.py
"""Listing repository interface."""
from abc import ABC, abstractmethod
from typing import Optional

from src.listing_domain.domain.entities.listing import Listing


class IListingRepository(ABC):

    @abstractmethod
    def get_by_id(self, listing_id: str) -> Optional[Listing]:
        """Retrieves a listing by id."""
        pass

    @abstractmethod
    def list_by_ledger(self, ledger_id: str) -> list[Listing]:
        """Retrieves every listing backed by a ledger."""
        pass

    @abstractmethod
    def list_by_vendor(self, vendor_id: str) -> list[Listing]:
        """Retrieves every ledger-backed listing of a vendor."""
        pass

    @abstractmethod
    def save_availability(self, listing: Listing) -> None:
        """Persists advertised quantity, unit and status of a listing."""
        pass

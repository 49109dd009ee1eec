# src/listing_domain/application/listing_sync_service.py
"""Application service reconciling ledger-backed listings with their stock ledgers."""

import logging
from typing import Optional

from src.common.config.settings import settings
from src.common.dtos.listing_dtos import ListingHealthReportDTO, ListingSyncResultDTO
from src.common.exceptions.custom_exceptions import NotFoundError
from src.listing_domain.domain.entities.listing import Listing
from src.listing_domain.domain.repositories.listing_repository import IListingRepository
from src.listing_domain.domain.services import listing_synchronizer
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger
from src.stock_ledger_domain.domain.repositories.stock_ledger_repository import IStockLedgerRepository

logger = logging.getLogger(__name__)


class ListingSyncApplicationService:

    def __init__(self, listing_repo: IListingRepository, ledger_repo: IStockLedgerRepository) -> None:
        self.listing_repo = listing_repo
        self.ledger_repo = ledger_repo

    def sync_ledger_listings(self, ledger: StockLedger) -> list[ListingSyncResultDTO]:
        """Clamps every listing backed by `ledger`. One failing listing doesn't stop the rest."""
        return [self._sync_one(listing, ledger) for listing in self.listing_repo.list_by_ledger(ledger.ledger_id)]

    def sync_vendor_listings(self, vendor_id: str) -> list[ListingSyncResultDTO]:
        """Clamps all of a vendor's ledger-backed listings against freshly loaded ledgers."""
        listings = self.listing_repo.list_by_vendor(vendor_id)
        logger.info(f"Syncing {len(listings)} listing(s) for vendor {vendor_id}")

        ledgers: dict[str, Optional[StockLedger]] = {}
        results: list[ListingSyncResultDTO] = []
        for listing in listings:
            if listing.ledger_id not in ledgers:
                ledgers[listing.ledger_id] = self.ledger_repo.get_by_id(listing.ledger_id)
            ledger = ledgers[listing.ledger_id]
            if ledger is None:
                results.append(
                    ListingSyncResultDTO(
                        listing_id=listing.listing_id,
                        success=False,
                        message=f"Ledger not found: {listing.ledger_id}",
                    )
                )
                continue
            results.append(self._sync_one(listing, ledger))

        success_count = sum(1 for result in results if result.success)
        logger.info(f"Synced {success_count} out of {len(listings)} listings for vendor {vendor_id}")
        return results

    def _sync_one(self, listing: Listing, ledger: StockLedger) -> ListingSyncResultDTO:
        previous_quantity = listing.advertised_quantity
        try:
            listing_synchronizer.sync(listing, ledger)
            self.listing_repo.save_availability(listing)
        except Exception as e:
            logger.error(f"Failed to sync listing {listing.listing_id} with ledger {ledger.ledger_id}: {e}")
            return ListingSyncResultDTO(listing_id=listing.listing_id, success=False, message=str(e))

        if listing.advertised_quantity != previous_quantity:
            logger.info(
                f"Listing {listing.listing_id} clamped from {previous_quantity:g} to {listing.advertised_quantity:g}"
            )
        return ListingSyncResultDTO(
            listing_id=listing.listing_id,
            success=True,
            message="Synced successfully",
            new_quantity=listing.advertised_quantity,
        )

    def update_advertised_quantity(self, listing_id: str, quantity: float) -> Listing:
        """Write path for listing quantity; refuses anything above the ledger's stock."""
        listing = self.listing_repo.get_by_id(listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)
        ledger = self.ledger_repo.get_by_id(listing.ledger_id)
        if ledger is None:
            raise NotFoundError("Ledger", listing.ledger_id)

        listing.advertised_quantity = quantity
        listing_synchronizer.validate_advertised_quantity(listing, ledger)
        listing.unit = ledger.current_stock.unit
        listing.refresh_status()
        self.listing_repo.save_availability(listing)
        return listing

    def check_listing_health(self, listing_id: str) -> ListingHealthReportDTO:
        listing = self.listing_repo.get_by_id(listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)
        ledger = self.ledger_repo.get_by_id(listing.ledger_id)
        if ledger is None:
            raise NotFoundError("Ledger", listing.ledger_id)
        return listing_synchronizer.check_health(
            listing, ledger, low_margin_threshold_percent=settings.LOW_MARGIN_THRESHOLD_PERCENT
        )

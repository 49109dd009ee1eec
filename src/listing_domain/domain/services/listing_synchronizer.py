# src/listing_domain/domain/services/listing_synchronizer.py
"""Keeps listings from advertising more than their ledger holds."""

from src.common.dtos.listing_dtos import ListingHealthIssueDTO, ListingHealthReportDTO
from src.common.exceptions.custom_exceptions import ValidationError
from src.listing_domain.domain.entities.listing import Listing
from src.stock_ledger_domain.domain.entities.enums import LedgerStatus
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger

DEFAULT_LOW_MARGIN_THRESHOLD_PERCENT = 10.0


def sync(listing: Listing, ledger: StockLedger) -> Listing:
    """Clamps the advertised quantity to the ledger's stock and copies the ledger unit."""
    listing.advertised_quantity = min(listing.advertised_quantity, ledger.current_stock.total_quantity)
    listing.unit = ledger.current_stock.unit
    listing.refresh_status()
    return listing


def validate_advertised_quantity(listing: Listing, ledger: StockLedger) -> None:
    """Write-time guard: a listing may not advertise a negative amount or more than the ledger holds."""
    if listing.advertised_quantity is None or listing.advertised_quantity < 0:
        raise ValidationError(
            f"Listing {listing.listing_id} cannot advertise a negative quantity", field="advertised_quantity"
        )
    available = ledger.current_stock.total_quantity
    if listing.advertised_quantity > available:
        raise ValidationError(
            f"Listing {listing.listing_id} advertises {listing.advertised_quantity:g} "
            f"but only {available:g} {ledger.current_stock.unit} is in stock",
            field="advertised_quantity",
        )


def instantaneous_margin_percent(price_per_unit: float, average_landed_cost: float) -> float:
    if price_per_unit <= 0:
        return 0.0
    return (price_per_unit - average_landed_cost) / price_per_unit * 100


def check_health(
    listing: Listing,
    ledger: StockLedger,
    low_margin_threshold_percent: float = DEFAULT_LOW_MARGIN_THRESHOLD_PERCENT,
) -> ListingHealthReportDTO:
    """Non-fatal report on a listing against its ledger. Nothing is modified."""
    report = ListingHealthReportDTO(listing_id=listing.listing_id, ledger_id=ledger.ledger_id)
    stock = ledger.current_stock

    if listing.advertised_quantity > stock.total_quantity:
        report.issues.append(
            ListingHealthIssueDTO(
                type="overselling_risk",
                severity="critical" if stock.total_quantity == 0 else "high",
                message=(
                    f"Listing advertises {listing.advertised_quantity:g} {listing.unit} "
                    f"but inventory holds {stock.total_quantity:g} {stock.unit}"
                ),
            )
        )

    if ledger.status is LedgerStatus.OUT_OF_STOCK:
        report.issues.append(
            ListingHealthIssueDTO(type="low_inventory", severity="critical", message="Inventory is out of stock")
        )
    elif ledger.status is LedgerStatus.LOW_STOCK:
        report.issues.append(
            ListingHealthIssueDTO(
                type="low_inventory",
                severity="high",
                message=(
                    f"Inventory is low: {stock.total_quantity:g} {stock.unit} "
                    f"(reorder level {ledger.settings.reorder_level:g})"
                ),
            )
        )

    if stock.total_quantity > 0:
        margin = instantaneous_margin_percent(listing.price_per_unit, stock.average_landed_cost)
        if margin < low_margin_threshold_percent:
            report.issues.append(
                ListingHealthIssueDTO(
                    type="low_profit_margin",
                    severity="critical" if margin < 0 else "medium",
                    message=f"Margin at current price is {margin:.1f}% (threshold {low_margin_threshold_percent:g}%)",
                )
            )

    return report

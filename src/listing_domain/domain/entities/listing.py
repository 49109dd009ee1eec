"""Listing reference entity."""

import enum
from dataclasses import dataclass
from typing import Optional

from src.common.exceptions.custom_exceptions import ValidationError


class ListingStatus(str, enum.Enum):
    ACTIVE = "active"
    OUT_OF_STOCK = "out_of_stock"
    INACTIVE = "inactive"


@dataclass
class Listing:
    """
    The slice of a sale listing the ledger cares about: how much it advertises, in which
    unit, at what price, and which ledger backs it. The listing itself belongs to the
    catalogue layer.
    """

    listing_id: str
    vendor_id: str
    ledger_id: str
    advertised_quantity: float
    unit: str
    price_per_unit: float
    status: ListingStatus = ListingStatus.ACTIVE
    id: Optional[int] = None  # For persistence, if it has a unique DB ID

    def __post_init__(self) -> None:
        """Post-initialization for validation."""
        self.status = ListingStatus(self.status)
        if self.advertised_quantity < 0:
            raise ValidationError("Advertised quantity cannot be negative", field="advertised_quantity")
        if self.price_per_unit < 0:
            raise ValidationError("Price cannot be negative", field="price_per_unit")

    def refresh_status(self) -> None:
        """Flips between active and out_of_stock as quantity runs out or returns."""
        if self.advertised_quantity == 0 and self.status is ListingStatus.ACTIVE:
            self.status = ListingStatus.OUT_OF_STOCK
        elif self.advertised_quantity > 0 and self.status is ListingStatus.OUT_OF_STOCK:
            self.status = ListingStatus.ACTIVE

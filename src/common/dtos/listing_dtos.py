"""Data Transfer Objects for listing synchronization and health checks."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ListingHealthIssueDTO:
    type: str  # overselling_risk | low_inventory | low_profit_margin
    severity: str
    message: str


@dataclass
class ListingHealthReportDTO:
    listing_id: str
    ledger_id: str
    issues: list[ListingHealthIssueDTO] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return not self.issues


@dataclass
class ListingSyncResultDTO:
    listing_id: str
    success: bool
    message: str
    new_quantity: Optional[float] = None

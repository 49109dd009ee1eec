"""Lot (purchase batch) entity."""

import math
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src.common.exceptions.custom_exceptions import ValidationError
from src.common.utils.date_utils import ensure_utc, parse_iso_datetime, to_iso
from src.stock_ledger_domain.domain.entities.enums import LotStatus
from src.stock_ledger_domain.domain.entities.supplier_info import SupplierInfo

_BATCH_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# Float leftovers below this are treated as zero (kg quantities like 1.1 + 1.2)
QUANTITY_TOLERANCE = 1e-9


def is_zero_quantity(quantity: float) -> bool:
    return math.isclose(quantity, 0.0, abs_tol=QUANTITY_TOLERANCE)


def generate_batch_id() -> str:
    """BATCH-<epoch millis>-<9 random base36 chars>."""
    suffix = "".join(random.choices(_BATCH_SUFFIX_ALPHABET, k=9))
    return f"BATCH-{int(time.time() * 1000)}-{suffix}"


@dataclass
class Lot:
    """
    One acquisition of stock at a point in time.

    Everything except remaining_quantity and status is fixed once recorded.
    unit_cost is the price paid for the whole acquired quantity; the extra
    costs are added to it to get the landed cost.
    """

    acquired_quantity: float
    unit_cost: float
    unit: str
    acquisition_date: datetime
    quality_grade: str = "standard"
    batch_id: str = field(default_factory=generate_batch_id)
    remaining_quantity: Optional[float] = None
    supplier: Optional[SupplierInfo] = None
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    notes: Optional[str] = None
    transport_cost: float = 0.0
    storage_cost: float = 0.0
    other_cost: float = 0.0
    status: LotStatus = LotStatus.ACTIVE

    def __post_init__(self) -> None:
        """Post-initialization for validation."""
        if self.remaining_quantity is None:
            self.remaining_quantity = self.acquired_quantity
        self.status = LotStatus(self.status)
        self.acquisition_date = ensure_utc(self.acquisition_date)
        self.harvest_date = ensure_utc(self.harvest_date)
        self.expiry_date = ensure_utc(self.expiry_date)

        if not self.unit:
            raise ValidationError("Unit is required", field="unit")
        if self.acquired_quantity < 1:
            raise ValidationError("Purchased quantity must be at least 1", field="acquired_quantity")
        if self.unit_cost < 0:
            raise ValidationError("Purchase price cannot be negative", field="unit_cost")
        for name in ("transport_cost", "storage_cost", "other_cost"):
            if getattr(self, name) < 0:
                raise ValidationError(f"{name} cannot be negative", field=name)
        if self.remaining_quantity < 0 or self.remaining_quantity > self.acquired_quantity:
            raise ValidationError(
                "Remaining quantity must be between 0 and the acquired quantity", field="remaining_quantity"
            )

    @property
    def landed_unit_cost(self) -> float:
        return self.unit_cost + self.transport_cost + self.storage_cost + self.other_cost

    @property
    def is_available(self) -> bool:
        """Active and still holding stock, i.e. a candidate for FIFO consumption."""
        return self.status is LotStatus.ACTIVE and self.remaining_quantity > 0

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date <= now

    def take(self, quantity: float, depleted_status: LotStatus) -> float:
        """
        Removes up to `quantity` from this lot and returns what was actually taken.
        A lot brought to zero moves to `depleted_status`.
        """
        taken = min(quantity, self.remaining_quantity)
        left = self.remaining_quantity - taken
        if left <= 0 or is_zero_quantity(left):
            # A rounding leftover goes with this take rather than staying behind as stock
            taken = self.remaining_quantity
            left = 0
            self.status = depleted_status
        self.remaining_quantity = left
        return taken

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "acquisition_date": to_iso(self.acquisition_date),
            "unit_cost": self.unit_cost,
            "acquired_quantity": self.acquired_quantity,
            "remaining_quantity": self.remaining_quantity,
            "unit": self.unit,
            "quality_grade": self.quality_grade,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "harvest_date": to_iso(self.harvest_date),
            "expiry_date": to_iso(self.expiry_date),
            "notes": self.notes,
            "transport_cost": self.transport_cost,
            "storage_cost": self.storage_cost,
            "other_cost": self.other_cost,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lot":
        return cls(
            batch_id=data["batch_id"],
            acquisition_date=parse_iso_datetime(data["acquisition_date"]),
            unit_cost=data["unit_cost"],
            acquired_quantity=data["acquired_quantity"],
            remaining_quantity=data["remaining_quantity"],
            unit=data["unit"],
            quality_grade=data.get("quality_grade") or "standard",
            supplier=SupplierInfo.from_dict(data.get("supplier")),
            harvest_date=parse_iso_datetime(data.get("harvest_date")),
            expiry_date=parse_iso_datetime(data.get("expiry_date")),
            notes=data.get("notes"),
            transport_cost=data.get("transport_cost", 0.0),
            storage_cost=data.get("storage_cost", 0.0),
            other_cost=data.get("other_cost", 0.0),
            status=LotStatus(data.get("status", LotStatus.ACTIVE.value)),
        )

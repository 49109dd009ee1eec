"""Closed vocabularies of the stock ledger."""

import enum


class LotStatus(str, enum.Enum):
    ACTIVE = "active"
    SOLD_OUT = "sold_out"
    EXPIRED = "expired"
    DAMAGED = "damaged"


class LedgerStatus(str, enum.Enum):
    ACTIVE = "active"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCKED = "overstocked"
    INACTIVE = "inactive"


class MovementType(str, enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    WASTAGE = "wastage"
    RETURN = "return"


class AdjustmentType(str, enum.Enum):
    """Non-sale reductions accepted by the adjustment engine."""

    WASTAGE = "wastage"
    DAMAGE = "damage"
    RETURN = "return"

    @property
    def depleted_lot_status(self) -> LotStatus:
        """Status a lot takes when this adjustment brings it to zero."""
        if self is AdjustmentType.DAMAGE:
            return LotStatus.DAMAGED
        if self in (AdjustmentType.WASTAGE, AdjustmentType.RETURN):
            # Wastage and returns reuse sold_out; there is no dedicated depleted state.
            return LotStatus.SOLD_OUT
        raise ValueError(f"Unhandled adjustment type: {self}")

    @property
    def movement_type(self) -> MovementType:
        if self is AdjustmentType.WASTAGE:
            return MovementType.WASTAGE
        if self is AdjustmentType.RETURN:
            return MovementType.RETURN
        if self is AdjustmentType.DAMAGE:
            return MovementType.ADJUSTMENT
        raise ValueError(f"Unhandled adjustment type: {self}")


class AlertType(str, enum.Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    EXPIRED_ITEMS = "expired_items"
    OVERSTOCK = "overstock"
    NO_MOVEMENT = "no_movement"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return {
            AlertSeverity.LOW: 1,
            AlertSeverity.MEDIUM: 2,
            AlertSeverity.HIGH: 3,
            AlertSeverity.CRITICAL: 4,
        }[self]

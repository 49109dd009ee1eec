"""Stock Ledger aggregate: one per (vendor, product) pair."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from src.common.exceptions.custom_exceptions import NotFoundError, ValidationError
from src.common.utils.date_utils import ensure_utc, parse_iso_datetime, to_iso
from src.stock_ledger_domain.domain.entities.enums import (
    AlertSeverity,
    AlertType,
    LedgerStatus,
    LotStatus,
    MovementType,
)
from src.stock_ledger_domain.domain.entities.lot import Lot, is_zero_quantity


def derive_status(total_quantity: float, reorder_level: float, max_stock_level: float) -> LedgerStatus:
    """Stock-health classification. Precedence: out_of_stock, low_stock, overstocked, active."""
    if total_quantity == 0:
        return LedgerStatus.OUT_OF_STOCK
    if total_quantity <= reorder_level:
        return LedgerStatus.LOW_STOCK
    if total_quantity >= max_stock_level:
        return LedgerStatus.OVERSTOCKED
    return LedgerStatus.ACTIVE


@dataclass
class CurrentStock:
    unit: str
    total_quantity: float = 0.0
    average_landed_cost: float = 0.0
    total_value: float = 0.0


@dataclass
class LedgerSettings:
    reorder_level: float = 10
    max_stock_level: float = 100
    auto_reorder_enabled: bool = False
    reorder_quantity: float = 50

    def __post_init__(self) -> None:
        if self.reorder_level < 0:
            raise ValidationError("Reorder level cannot be negative", field="reorder_level")
        if self.max_stock_level < 1:
            raise ValidationError("Maximum stock level must be at least 1", field="max_stock_level")
        if self.reorder_quantity < 1:
            raise ValidationError("Reorder quantity must be at least 1", field="reorder_quantity")


@dataclass
class StockMovement:
    type: MovementType
    quantity: float  # signed: additions positive, removals negative
    timestamp: datetime
    reason: Optional[str] = None
    reference_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "quantity": self.quantity,
            "timestamp": to_iso(self.timestamp),
            "reason": self.reason,
            "reference_id": self.reference_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StockMovement":
        return cls(
            type=MovementType(data["type"]),
            quantity=data["quantity"],
            timestamp=parse_iso_datetime(data["timestamp"]),
            reason=data.get("reason"),
            reference_id=data.get("reference_id"),
        )


@dataclass
class LedgerAnalytics:
    total_acquisition_value: float = 0.0
    total_sold_value: float = 0.0
    total_sold_quantity: float = 0.0
    average_sale_price: float = 0.0
    gross_profit: float = 0.0
    profit_margin_percent: float = 0.0
    turnover_rate: float = 0.0
    last_sold_at: Optional[datetime] = None
    movements: list[StockMovement] = field(default_factory=list)


@dataclass
class Alert:
    type: AlertType
    message: str
    severity: AlertSeverity = AlertSeverity.MEDIUM
    created_at: Optional[datetime] = None
    is_read: bool = False
    resolved_at: Optional[datetime] = None
    alert_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_open(self) -> bool:
        """Unread and unresolved. An open alert suppresses new alerts of its type."""
        return not self.is_read and self.resolved_at is None

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "type": self.type.value,
            "message": self.message,
            "severity": self.severity.value,
            "is_read": self.is_read,
            "created_at": to_iso(self.created_at),
            "resolved_at": to_iso(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Alert":
        return cls(
            alert_id=data["alert_id"],
            type=AlertType(data["type"]),
            message=data["message"],
            severity=AlertSeverity(data.get("severity", AlertSeverity.MEDIUM.value)),
            is_read=bool(data.get("is_read", False)),
            created_at=parse_iso_datetime(data.get("created_at")),
            resolved_at=parse_iso_datetime(data.get("resolved_at")),
        )


@dataclass
class StockLedger:
    """
    Owns every lot a vendor holds of one product, plus the figures derived from them.

    current_stock, status and last_stock_update_at are never written directly;
    they are rebuilt by recompute() after every lot mutation.
    """

    vendor_id: str
    product_id: str
    current_stock: CurrentStock
    settings: LedgerSettings = field(default_factory=LedgerSettings)
    lots: list[Lot] = field(default_factory=list)
    analytics: LedgerAnalytics = field(default_factory=LedgerAnalytics)
    status: LedgerStatus = LedgerStatus.ACTIVE
    alerts: list[Alert] = field(default_factory=list)
    last_stock_update_at: Optional[datetime] = None
    ledger_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    version: int = 0  # persistence row version, bumped by the repository

    @classmethod
    def open(
        cls,
        vendor_id: str,
        product_id: str,
        unit: str,
        settings: Optional[LedgerSettings] = None,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "StockLedger":
        """Creates an empty ledger for a vendor/product pair; stock arrives via add_lot()."""
        if not unit:
            raise ValidationError("Stock unit is required", field="unit")
        return cls(
            vendor_id=vendor_id,
            product_id=product_id,
            current_stock=CurrentStock(unit=unit),
            settings=settings or LedgerSettings(),
            created_by=created_by,
            created_at=now,
        )

    # --- lot queries ---

    def active_lots(self) -> list[Lot]:
        return [lot for lot in self.lots if lot.status is LotStatus.ACTIVE]

    def fifo_lots(self) -> list[Lot]:
        """Available lots, oldest acquisition first. A sorted copy; self.lots keeps its order."""
        return sorted((lot for lot in self.lots if lot.is_available), key=lambda lot: lot.acquisition_date)

    def find_lot(self, batch_id: str) -> Lot:
        for lot in self.lots:
            if lot.batch_id == batch_id:
                return lot
        raise NotFoundError("Lot", batch_id)

    @property
    def total_acquired_quantity(self) -> float:
        return sum(lot.acquired_quantity for lot in self.lots)

    # --- mutations ---

    def add_lot(self, lot: Lot, now: datetime) -> None:
        if lot.unit != self.current_stock.unit:
            raise ValidationError(
                f"Unit mismatch: ledger tracks '{self.current_stock.unit}', lot is in '{lot.unit}'", field="unit"
            )
        if any(existing.batch_id == lot.batch_id for existing in self.lots):
            raise ValidationError(f"Batch {lot.batch_id} is already recorded", field="batch_id")

        self.lots.append(lot)
        self.analytics.total_acquisition_value += lot.unit_cost * lot.acquired_quantity
        self.record_movement(
            MovementType.PURCHASE, lot.acquired_quantity, now, reason="New stock purchase", reference_id=lot.batch_id
        )
        self.recompute(now)

    def record_movement(
        self,
        movement_type: MovementType,
        quantity: float,
        now: datetime,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> None:
        self.analytics.movements.append(
            StockMovement(
                type=movement_type, quantity=quantity, timestamp=now, reason=reason, reference_id=reference_id
            )
        )

    def update_settings(self, settings: LedgerSettings, now: datetime, updated_by: Optional[str] = None) -> None:
        self.settings = settings
        self.updated_by = updated_by
        self.recompute(now)

    def deactivate(self, now: datetime) -> None:
        self.status = LedgerStatus.INACTIVE
        self.last_stock_update_at = now

    def reactivate(self, now: datetime) -> None:
        self.status = LedgerStatus.ACTIVE
        self.recompute(now)

    def recompute(self, now: datetime) -> None:
        """Rebuilds current_stock, status and last_stock_update_at from the lots."""
        active = self.active_lots()
        total_quantity = sum(lot.remaining_quantity for lot in active)
        if is_zero_quantity(total_quantity):
            total_quantity = 0.0

        if total_quantity == 0:
            average_landed_cost = 0.0
        else:
            weighted_cost = sum(lot.landed_unit_cost * lot.remaining_quantity for lot in active)
            average_landed_cost = weighted_cost / total_quantity

        self.current_stock.total_quantity = total_quantity
        self.current_stock.average_landed_cost = average_landed_cost
        self.current_stock.total_value = average_landed_cost * total_quantity

        acquired = self.total_acquired_quantity
        self.analytics.turnover_rate = self.analytics.total_sold_quantity / acquired if acquired > 0 else 0.0

        if self.status is not LedgerStatus.INACTIVE:
            self.status = derive_status(total_quantity, self.settings.reorder_level, self.settings.max_stock_level)
        self.last_stock_update_at = now

    # --- alerts ---

    def open_alert(self, alert_type: AlertType) -> Optional[Alert]:
        for alert in self.alerts:
            if alert.type is alert_type and alert.is_open:
                return alert
        return None

    def unread_alerts(self) -> list[Alert]:
        return [alert for alert in self.alerts if alert.is_open]

    def mark_alerts_read(self, alert_ids: Optional[list[str]] = None) -> int:
        """Marks the given alerts (or every unread alert) as read. Returns how many changed."""
        changed = 0
        for alert in self.alerts:
            if alert.is_read:
                continue
            if alert_ids is None or alert.alert_id in alert_ids:
                alert.is_read = True
                changed += 1
        return changed

    def resolve_alerts(self, now: datetime, alert_types: Optional[list[AlertType]] = None) -> int:
        changed = 0
        for alert in self.alerts:
            if alert.resolved_at is not None:
                continue
            if alert_types is None or alert.type in alert_types:
                alert.resolved_at = now
                changed += 1
        return changed

    # --- persistence shape ---

    def to_dict(self) -> dict:
        return {
            "ledger_id": self.ledger_id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "lots": [lot.to_dict() for lot in self.lots],
            "current_stock": {
                "total_quantity": self.current_stock.total_quantity,
                "unit": self.current_stock.unit,
                "average_landed_cost": self.current_stock.average_landed_cost,
                "total_value": self.current_stock.total_value,
            },
            "settings": {
                "reorder_level": self.settings.reorder_level,
                "max_stock_level": self.settings.max_stock_level,
                "auto_reorder_enabled": self.settings.auto_reorder_enabled,
                "reorder_quantity": self.settings.reorder_quantity,
            },
            "analytics": {
                "total_acquisition_value": self.analytics.total_acquisition_value,
                "total_sold_value": self.analytics.total_sold_value,
                "total_sold_quantity": self.analytics.total_sold_quantity,
                "average_sale_price": self.analytics.average_sale_price,
                "gross_profit": self.analytics.gross_profit,
                "profit_margin_percent": self.analytics.profit_margin_percent,
                "turnover_rate": self.analytics.turnover_rate,
                "last_sold_at": to_iso(self.analytics.last_sold_at),
                "movements": [movement.to_dict() for movement in self.analytics.movements],
            },
            "status": self.status.value,
            "alerts": [alert.to_dict() for alert in self.alerts],
            "last_stock_update_at": to_iso(self.last_stock_update_at),
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict, version: int = 0) -> "StockLedger":
        stock = data["current_stock"]
        settings = data.get("settings") or {}
        analytics = data.get("analytics") or {}
        return cls(
            ledger_id=data["ledger_id"],
            vendor_id=data["vendor_id"],
            product_id=data["product_id"],
            lots=[Lot.from_dict(lot) for lot in data.get("lots", [])],
            current_stock=CurrentStock(
                unit=stock["unit"],
                total_quantity=stock.get("total_quantity", 0.0),
                average_landed_cost=stock.get("average_landed_cost", 0.0),
                total_value=stock.get("total_value", 0.0),
            ),
            settings=LedgerSettings(**settings),
            analytics=LedgerAnalytics(
                total_acquisition_value=analytics.get("total_acquisition_value", 0.0),
                total_sold_value=analytics.get("total_sold_value", 0.0),
                total_sold_quantity=analytics.get("total_sold_quantity", 0.0),
                average_sale_price=analytics.get("average_sale_price", 0.0),
                gross_profit=analytics.get("gross_profit", 0.0),
                profit_margin_percent=analytics.get("profit_margin_percent", 0.0),
                turnover_rate=analytics.get("turnover_rate", 0.0),
                last_sold_at=parse_iso_datetime(analytics.get("last_sold_at")),
                movements=[StockMovement.from_dict(m) for m in analytics.get("movements", [])],
            ),
            status=LedgerStatus(data.get("status", LedgerStatus.ACTIVE.value)),
            alerts=[Alert.from_dict(alert) for alert in data.get("alerts", [])],
            last_stock_update_at=parse_iso_datetime(data.get("last_stock_update_at")),
            created_by=data.get("created_by"),
            updated_by=data.get("updated_by"),
            created_at=ensure_utc(parse_iso_datetime(data.get("created_at"))),
            version=version,
        )

"""Data Transfer Objects for Stock Ledger commands, results and alert payloads."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from src.common.utils.date_utils import parse_iso_datetime, to_iso


@dataclass
class PurchaseLotDTO:
    """Incoming lot data for recordPurchase, as handed over by the CRUD layer."""

    acquired_quantity: float
    unit_cost: float
    unit: str
    quality_grade: str = "standard"
    acquisition_date: Optional[datetime] = None
    supplier_name: Optional[str] = None
    supplier_contact: Optional[str] = None
    supplier_address: Optional[str] = None
    harvest_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    transport_cost: float = 0.0
    storage_cost: float = 0.0
    other_cost: float = 0.0
    notes: Optional[str] = None
    batch_id: Optional[str] = None

    @classmethod
    def from_request(cls, data: dict[str, Any]) -> "PurchaseLotDTO":
        """Maps a request body (marketplace field names) onto the DTO."""
        supplier = data.get("supplier") or {}
        return cls(
            acquired_quantity=data.get("purchasedQuantity", data.get("acquired_quantity")),
            unit_cost=data.get("purchasePrice", data.get("unit_cost")),
            unit=data.get("unit"),
            quality_grade=data.get("qualityGrade") or data.get("quality_grade") or "standard",
            acquisition_date=parse_iso_datetime(data.get("purchaseDate") or data.get("acquisition_date")),
            supplier_name=supplier.get("name"),
            supplier_contact=supplier.get("contact"),
            supplier_address=supplier.get("address"),
            harvest_date=parse_iso_datetime(data.get("harvestDate") or data.get("harvest_date")),
            expiry_date=parse_iso_datetime(data.get("expiryDate") or data.get("expiry_date")),
            transport_cost=data.get("transportationCost", data.get("transport_cost", 0.0)) or 0.0,
            storage_cost=data.get("storageCost", data.get("storage_cost", 0.0)) or 0.0,
            other_cost=data.get("otherCosts", data.get("other_cost", 0.0)) or 0.0,
            notes=data.get("notes"),
            batch_id=data.get("batchId") or data.get("batch_id"),
        )


@dataclass
class SettingsUpdateDTO:
    """Partial settings update; None leaves the current value in place."""

    reorder_level: Optional[float] = None
    max_stock_level: Optional[float] = None
    auto_reorder_enabled: Optional[bool] = None
    reorder_quantity: Optional[float] = None


@dataclass
class ConsumedLotDTO:
    batch_id: str
    quantity_taken: float
    landed_unit_cost: float


@dataclass
class ConsumeResultDTO:
    """Outcome of a sale against a ledger."""

    ledger_id: str
    quantity: float
    sale_price_per_unit: float
    consumed_lots: list[ConsumedLotDTO] = field(default_factory=list)
    cost_of_goods_sold: float = 0.0
    gross_profit: float = 0.0
    reference_id: Optional[str] = None


@dataclass
class AlertNotificationDTO:
    """Payload handed to the notifier for each newly appended alert."""

    ledger_id: str
    vendor_id: str
    product_id: str
    alert_type: str
    severity: str
    message: str
    current_stock: float
    reorder_level: float
    title: Optional[str] = None
    priority: Optional[str] = None
    action_text: Optional[str] = None
    action_required: bool = False
    created_at: Optional[datetime] = None

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["created_at"] = to_iso(self.created_at)
        return payload


@dataclass
class VendorInventoryReportDTO:
    """Per-vendor roll-up of ledger state for whoever renders dashboards."""

    vendor_id: str
    total_products: int = 0
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    overstocked_items: int = 0
    total_alerts: int = 0
    total_stock_value: float = 0.0
    average_profit_margin: float = 0.0
    generated_at: Optional[datetime] = None


@dataclass
class AlertScanResultDTO:
    """Summary of one monitoring pass."""

    ledgers_scanned: int = 0
    alerts_raised: int = 0
    notifications_sent: int = 0
    notifications_skipped: int = 0
    notifications_failed: int = 0
    failed_ledgers: list[str] = field(default_factory=list)

# src/stock_ledger_domain/application/stock_ledger_service.py
"""Application service for stock ledger commands: purchases, sales, adjustments and alert scans."""

import logging
from typing import Callable, Optional, TypeVar

from src.common.config.settings import settings
from src.common.dtos.ledger_dtos import ConsumeResultDTO, PurchaseLotDTO, SettingsUpdateDTO
from src.common.exceptions.custom_exceptions import (
    DuplicateLedgerError,
    NotFoundError,
    OptimisticConflictError,
    ValidationError,
)
from src.common.utils.date_utils import Clock, utc_now
from src.listing_domain.application.listing_sync_service import ListingSyncApplicationService
from src.stock_ledger_domain.domain.entities.enums import AlertType, LedgerStatus
from src.stock_ledger_domain.domain.entities.lot import Lot
from src.stock_ledger_domain.domain.entities.stock_ledger import Alert, LedgerSettings, StockLedger
from src.stock_ledger_domain.domain.entities.supplier_info import SupplierInfo
from src.stock_ledger_domain.domain.repositories.stock_ledger_repository import IStockLedgerRepository
from src.stock_ledger_domain.domain.services import adjustment_engine, alert_engine, consumption_engine
from src.stock_ledger_domain.infrastructure.locking.ledger_lock_registry import LedgerLockRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses matched by get_low_stock_ledgers for each requested severity
_LOW_STOCK_STATUSES = {
    "critical": [LedgerStatus.OUT_OF_STOCK],
    "high": [LedgerStatus.LOW_STOCK, LedgerStatus.OUT_OF_STOCK],
    "all": [LedgerStatus.LOW_STOCK, LedgerStatus.OUT_OF_STOCK, LedgerStatus.OVERSTOCKED],
}


class StockLedgerApplicationService:
    """
    Entry point for every state-changing operation on a ledger.

    Each command runs load -> mutate -> persist while holding the ledger's lock, so two
    commands on the same ledger never interleave. A stale write (another process saved
    first) is retried once from a fresh load.
    """

    def __init__(
        self,
        ledger_repo: IStockLedgerRepository,
        lock_registry: Optional[LedgerLockRegistry] = None,
        listing_sync_service: Optional[ListingSyncApplicationService] = None,
        clock: Clock = utc_now,
        no_movement_days: int = settings.NO_MOVEMENT_DAYS,
    ) -> None:
        self.ledger_repo = ledger_repo
        self.locks = lock_registry or LedgerLockRegistry()
        self.listing_sync_service = listing_sync_service
        self.clock = clock
        self.no_movement_days = no_movement_days

    # --- helpers ---

    def _load(self, ledger_id: str) -> StockLedger:
        ledger = self.ledger_repo.get_by_id(ledger_id)
        if ledger is None:
            raise NotFoundError("Ledger", ledger_id)
        return ledger

    def _run_locked(self, ledger_id: str, command: Callable[[StockLedger], T]) -> tuple[StockLedger, T]:
        """Loads the ledger, applies `command`, saves. Retries once on a version conflict."""
        with self.locks.hold(ledger_id):
            try:
                return self._apply(ledger_id, command)
            except OptimisticConflictError as e:
                logger.warning(f"{e}. Retrying once with a fresh copy.")
                return self._apply(ledger_id, command)

    def _apply(self, ledger_id: str, command: Callable[[StockLedger], T]) -> tuple[StockLedger, T]:
        ledger = self._load(ledger_id)
        result = command(ledger)
        self.ledger_repo.save(ledger)
        return ledger, result

    def _sync_listings(self, ledger: StockLedger) -> None:
        if self.listing_sync_service is None:
            return
        try:
            results = self.listing_sync_service.sync_ledger_listings(ledger)
        except Exception as e:
            # The ledger is already committed; listings catch up on the next change.
            logger.error(f"Listing sync failed for ledger {ledger.ledger_id}: {e}", exc_info=True)
            return
        failed = [result.listing_id for result in results if not result.success]
        if failed:
            logger.warning(f"Listings not synced for ledger {ledger.ledger_id}: {', '.join(failed)}")

    def _build_lot(self, lot_data: PurchaseLotDTO) -> Lot:
        if lot_data.acquired_quantity is None:
            raise ValidationError("Purchased quantity is required", field="acquired_quantity")
        if lot_data.unit_cost is None:
            raise ValidationError("Purchase price is required", field="unit_cost")

        supplier = None
        if lot_data.supplier_name or lot_data.supplier_contact or lot_data.supplier_address:
            supplier = SupplierInfo(
                name=lot_data.supplier_name, contact=lot_data.supplier_contact, address=lot_data.supplier_address
            )

        lot_kwargs = {}
        if lot_data.batch_id:
            lot_kwargs["batch_id"] = lot_data.batch_id
        return Lot(
            acquired_quantity=lot_data.acquired_quantity,
            unit_cost=lot_data.unit_cost,
            unit=lot_data.unit,
            acquisition_date=lot_data.acquisition_date or self.clock(),
            quality_grade=lot_data.quality_grade or "standard",
            supplier=supplier,
            harvest_date=lot_data.harvest_date,
            expiry_date=lot_data.expiry_date,
            notes=lot_data.notes,
            transport_cost=lot_data.transport_cost,
            storage_cost=lot_data.storage_cost,
            other_cost=lot_data.other_cost,
            **lot_kwargs,
        )

    @staticmethod
    def _merge_settings(current: LedgerSettings, update: Optional[SettingsUpdateDTO]) -> LedgerSettings:
        if update is None:
            return current
        return LedgerSettings(
            reorder_level=current.reorder_level if update.reorder_level is None else update.reorder_level,
            max_stock_level=current.max_stock_level if update.max_stock_level is None else update.max_stock_level,
            auto_reorder_enabled=(
                current.auto_reorder_enabled if update.auto_reorder_enabled is None else update.auto_reorder_enabled
            ),
            reorder_quantity=(
                current.reorder_quantity if update.reorder_quantity is None else update.reorder_quantity
            ),
        )

    @staticmethod
    def _default_settings() -> LedgerSettings:
        return LedgerSettings(
            reorder_level=settings.DEFAULT_REORDER_LEVEL,
            max_stock_level=settings.DEFAULT_MAX_STOCK_LEVEL,
            reorder_quantity=settings.DEFAULT_REORDER_QUANTITY,
        )

    # --- commands ---

    def record_purchase(
        self,
        vendor_id: str,
        product_id: str,
        lot_data: PurchaseLotDTO,
        ledger_settings: Optional[SettingsUpdateDTO] = None,
        user_id: Optional[str] = None,
    ) -> StockLedger:
        """
        Appends a lot to the vendor's ledger for this product, creating the ledger on the
        first purchase. `ledger_settings` only applies when the ledger is created.
        """
        lot = self._build_lot(lot_data)

        with self.locks.hold(LedgerLockRegistry.pair_key(vendor_id, product_id)):
            existing = self.ledger_repo.get_by_vendor_product(vendor_id, product_id)
            if existing is None:
                now = self.clock()
                ledger = StockLedger.open(
                    vendor_id,
                    product_id,
                    unit=lot.unit,
                    settings=self._merge_settings(self._default_settings(), ledger_settings),
                    created_by=user_id,
                    now=now,
                )
                ledger.add_lot(lot, now)
                try:
                    self.ledger_repo.add(ledger)
                    logger.info(
                        f"Opened ledger {ledger.ledger_id} for vendor {vendor_id}, product {product_id} "
                        f"with {lot.acquired_quantity:g} {lot.unit} (batch {lot.batch_id})"
                    )
                    return ledger
                except DuplicateLedgerError:
                    # Another process created it between our read and insert.
                    logger.info(f"Ledger for vendor {vendor_id}, product {product_id} appeared concurrently")
                    existing = self.ledger_repo.get_by_vendor_product(vendor_id, product_id)
                    if existing is None:
                        raise

            def append_lot(ledger: StockLedger) -> None:
                ledger.updated_by = user_id
                ledger.add_lot(lot, self.clock())

            ledger, _ = self._run_locked(existing.ledger_id, append_lot)

        logger.info(
            f"Recorded purchase of {lot.acquired_quantity:g} {lot.unit} on ledger {ledger.ledger_id} "
            f"(batch {lot.batch_id}); stock now {ledger.current_stock.total_quantity:g}"
        )
        self._sync_listings(ledger)
        return ledger

    def record_sale(
        self, ledger_id: str, quantity: float, price_per_unit: float, reference_id: Optional[str] = None
    ) -> ConsumeResultDTO:
        ledger, result = self._run_locked(
            ledger_id,
            lambda ledger: consumption_engine.consume(ledger, quantity, price_per_unit, reference_id, self.clock()),
        )
        logger.info(
            f"Recorded sale of {quantity:g} on ledger {ledger_id} (ref {reference_id}); "
            f"stock now {ledger.current_stock.total_quantity:g}, status {ledger.status.value}"
        )
        self._sync_listings(ledger)
        return result

    def record_adjustment(
        self,
        ledger_id: str,
        adjustment_type: str,
        quantity: float,
        reason: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> StockLedger:
        ledger, _ = self._run_locked(
            ledger_id,
            lambda ledger: adjustment_engine.adjust(
                ledger, adjustment_type, quantity, reason, self.clock(), target_batch_id=batch_id
            ),
        )
        logger.info(
            f"Recorded {adjustment_type} of {quantity:g} on ledger {ledger_id}; "
            f"stock now {ledger.current_stock.total_quantity:g}"
        )
        self._sync_listings(ledger)
        return ledger

    def update_settings(
        self, ledger_id: str, settings_update: SettingsUpdateDTO, user_id: Optional[str] = None
    ) -> StockLedger:
        def apply(ledger: StockLedger) -> None:
            ledger.update_settings(self._merge_settings(ledger.settings, settings_update), self.clock(), user_id)

        ledger, _ = self._run_locked(ledger_id, apply)
        logger.info(f"Updated settings of ledger {ledger_id}; status now {ledger.status.value}")
        return ledger

    def mark_expired_lots(self, ledger_id: Optional[str] = None) -> int:
        """Moves lots past their expiry date to `expired`. Returns how many lots changed."""
        ledger_ids = [ledger_id] if ledger_id else self.ledger_repo.list_ledger_ids()
        total = 0
        for current_id in ledger_ids:
            ledger, expired = self._run_locked(
                current_id, lambda ledger: adjustment_engine.expire_lots(ledger, self.clock())
            )
            if expired:
                logger.info(f"Marked {len(expired)} lot(s) expired on ledger {current_id}")
                self._sync_listings(ledger)
            total += len(expired)
        return total

    def deactivate_ledger(self, ledger_id: str, user_id: Optional[str] = None) -> StockLedger:
        def apply(ledger: StockLedger) -> None:
            ledger.updated_by = user_id
            ledger.deactivate(self.clock())

        ledger, _ = self._run_locked(ledger_id, apply)
        logger.info(f"Ledger {ledger_id} deactivated")
        return ledger

    def reactivate_ledger(self, ledger_id: str, user_id: Optional[str] = None) -> StockLedger:
        def apply(ledger: StockLedger) -> None:
            ledger.updated_by = user_id
            ledger.reactivate(self.clock())

        ledger, _ = self._run_locked(ledger_id, apply)
        logger.info(f"Ledger {ledger_id} reactivated with status {ledger.status.value}")
        return ledger

    # --- alerts ---

    def scan_ledger(self, ledger_id: str) -> tuple[StockLedger, list[Alert]]:
        """Resolves alerts that no longer hold, derives new ones, persists. Returns the new alerts."""

        def scan(ledger: StockLedger) -> list[Alert]:
            if ledger.status is LedgerStatus.INACTIVE:
                # Deactivated ledgers keep their alerts as they were and raise no new ones
                return []
            now = self.clock()
            resolved = alert_engine.resolve_cleared_alerts(ledger, now, self.no_movement_days)
            if resolved:
                logger.debug(f"Ledger {ledger.ledger_id}: resolved {len(resolved)} cleared alert(s)")
            return alert_engine.derive_alerts(ledger, now, self.no_movement_days)

        try:
            return self._run_locked(ledger_id, scan)
        except Exception as e:
            logger.error(f"Alert scan failed for ledger {ledger_id}: {e}", exc_info=True)
            raise

    def run_alert_scan(self, ledger_id: Optional[str] = None) -> list[Alert]:
        """
        Runs the alert engine on one ledger, or on every ledger when no id is given. In the
        all-ledgers case a failing ledger is logged and skipped. Inactive ledgers raise nothing.
        """
        if ledger_id is not None:
            _, alerts = self.scan_ledger(ledger_id)
            return alerts

        raised: list[Alert] = []
        for current_id in self.ledger_repo.list_ledger_ids():
            try:
                _, alerts = self.scan_ledger(current_id)
            except Exception as e:
                logger.warning(f"Skipping ledger {current_id} in alert scan: {e}")
                continue
            raised.extend(alerts)
        logger.info(f"Alert scan over all ledgers raised {len(raised)} alert(s)")
        return raised

    def mark_alerts_read(self, ledger_id: str, alert_ids: Optional[list[str]] = None) -> int:
        _, changed = self._run_locked(ledger_id, lambda ledger: ledger.mark_alerts_read(alert_ids))
        return changed

    def resolve_alerts(self, ledger_id: str, alert_types: Optional[list[AlertType | str]] = None) -> int:
        types = [AlertType(alert_type) for alert_type in alert_types] if alert_types is not None else None
        _, changed = self._run_locked(ledger_id, lambda ledger: ledger.resolve_alerts(self.clock(), types))
        return changed

    # --- queries (lock-free) ---

    def get_ledger(self, ledger_id: str) -> StockLedger:
        return self._load(ledger_id)

    def get_ledger_for_pair(self, vendor_id: str, product_id: str) -> StockLedger:
        ledger = self.ledger_repo.get_by_vendor_product(vendor_id, product_id)
        if ledger is None:
            raise NotFoundError("Ledger", f"{vendor_id}/{product_id}")
        return ledger

    def get_low_stock_ledgers(self, vendor_id: str, severity: str = "all", limit: int = 50) -> list[StockLedger]:
        """critical: out of stock only; high: low or out of stock; anything else adds overstocked."""
        statuses = _LOW_STOCK_STATUSES.get(severity, _LOW_STOCK_STATUSES["all"])
        ledgers = self.ledger_repo.list_by_vendor(vendor_id, statuses=statuses)
        ledgers.sort(key=lambda ledger: ledger.current_stock.total_quantity)
        return ledgers[:limit]

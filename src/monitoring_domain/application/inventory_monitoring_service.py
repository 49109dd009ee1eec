# src/monitoring_domain/application/inventory_monitoring_service.py
"""Periodic inventory monitoring: alert scans, deduplicated notifications and vendor reports."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Optional

import schedule

from src.common.config.settings import settings
from src.common.dtos.ledger_dtos import AlertNotificationDTO, AlertScanResultDTO, VendorInventoryReportDTO
from src.common.exceptions.custom_exceptions import ValidationError
from src.common.utils.date_utils import Clock, format_local, utc_now
from src.monitoring_domain.domain.notifier import INotifier, IRecentNotificationChecker
from src.stock_ledger_domain.application.stock_ledger_service import StockLedgerApplicationService
from src.stock_ledger_domain.domain.entities.enums import AlertSeverity, AlertType, LedgerStatus
from src.stock_ledger_domain.domain.entities.stock_ledger import Alert, StockLedger
from src.stock_ledger_domain.domain.repositories.stock_ledger_repository import IStockLedgerRepository

logger = logging.getLogger(__name__)

ALERT_TITLES = {
    AlertType.LOW_STOCK: "Low Stock Alert: {product}",
    AlertType.OUT_OF_STOCK: "Out of Stock: {product}",
    AlertType.EXPIRED_ITEMS: "Expired Items: {product}",
    AlertType.OVERSTOCK: "Overstock Alert: {product}",
    AlertType.NO_MOVEMENT: "Low Sales Activity: {product}",
}

SEVERITY_PRIORITIES = {
    AlertSeverity.CRITICAL: "urgent",
    AlertSeverity.HIGH: "high",
    AlertSeverity.MEDIUM: "normal",
    AlertSeverity.LOW: "low",
}

ACTION_TEXTS = {
    AlertType.LOW_STOCK: "Restock Now",
    AlertType.OUT_OF_STOCK: "Add Inventory",
    AlertType.EXPIRED_ITEMS: "Review Items",
    AlertType.OVERSTOCK: "Adjust Pricing",
    AlertType.NO_MOVEMENT: "Review Strategy",
}


def alert_title(alert_type: AlertType, product: str) -> str:
    return ALERT_TITLES.get(alert_type, "Inventory Alert: {product}").format(product=product)


def severity_to_priority(severity: AlertSeverity) -> str:
    return SEVERITY_PRIORITIES.get(severity, "normal")


def action_text(alert_type: AlertType) -> str:
    return ACTION_TEXTS.get(alert_type, "View Details")


def build_notification(ledger: StockLedger, alert: Alert) -> AlertNotificationDTO:
    return AlertNotificationDTO(
        ledger_id=ledger.ledger_id,
        vendor_id=ledger.vendor_id,
        product_id=ledger.product_id,
        alert_type=alert.type.value,
        severity=alert.severity.value,
        message=alert.message,
        current_stock=ledger.current_stock.total_quantity,
        reorder_level=ledger.settings.reorder_level,
        title=alert_title(alert.type, ledger.product_id),
        priority=severity_to_priority(alert.severity),
        action_text=action_text(alert.type),
        action_required=alert.severity in (AlertSeverity.CRITICAL, AlertSeverity.HIGH),
        created_at=alert.created_at,
    )


class InventoryMonitoringService:
    """
    Runs the alert engine over ledgers needing attention on a fixed interval and hands each
    new alert to the notifier, unless the same alert was already sent within the dedup window.

    The schedule runs on a daemon thread owned by this object; start() and stop() control it.
    """

    def __init__(
        self,
        ledger_service: StockLedgerApplicationService,
        ledger_repo: IStockLedgerRepository,
        notifier: INotifier,
        notification_log: IRecentNotificationChecker,
        clock: Clock = utc_now,
        interval_minutes: int = settings.MONITOR_INTERVAL_MINUTES,
        batch_size: int = settings.MONITOR_BATCH_SIZE,
        dedup_hours: int = settings.NOTIFICATION_DEDUP_HOURS,
        manual_dedup_hours: int = settings.MANUAL_CHECK_DEDUP_HOURS,
        expiry_lookahead_days: int = settings.EXPIRY_LOOKAHEAD_DAYS,
        poll_seconds: float = 1.0,
    ) -> None:
        self.ledger_service = ledger_service
        self.ledger_repo = ledger_repo
        self.notifier = notifier
        self.notification_log = notification_log
        self.clock = clock
        self.interval_minutes = interval_minutes
        self.batch_size = batch_size
        self.dedup_hours = dedup_hours
        self.manual_dedup_hours = manual_dedup_hours
        self.expiry_lookahead_days = expiry_lookahead_days
        self.poll_seconds = poll_seconds

        self.is_running = False
        self.last_check_at: Optional[datetime] = None
        self.last_result: Optional[AlertScanResultDTO] = None

        self._scheduler = schedule.Scheduler()
        self._job: Optional[schedule.Job] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._check_lock = threading.Lock()  # one check at a time

    # --- lifecycle ---

    def start(self, run_immediately: bool = True) -> None:
        if self.is_running:
            logger.warning("Inventory monitoring service is already running")
            return

        logger.info("Starting inventory monitoring service...")
        self._stop_event.clear()
        self._job = self._scheduler.every(self.interval_minutes).minutes.do(self.perform_inventory_check)
        self._thread = threading.Thread(
            target=self._run_loop, args=(run_immediately,), name="inventory-monitor", daemon=True
        )
        self.is_running = True
        self._thread.start()
        logger.info(f"Inventory monitoring service started. Checking every {self.interval_minutes} minutes.")

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        if not self.is_running:
            logger.warning("Inventory monitoring service is not running")
            return

        logger.info("Stopping inventory monitoring service...")
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._scheduler.clear()
        self._job = None
        self._thread = None
        self.is_running = False
        logger.info("Inventory monitoring service stopped")

    def _run_loop(self, run_immediately: bool) -> None:
        if run_immediately:
            self.perform_inventory_check()
        while not self._stop_event.wait(self.poll_seconds):
            self._scheduler.run_pending()

    def set_check_interval(self, interval_minutes: int) -> None:
        if interval_minutes is None or interval_minutes <= 0:
            raise ValidationError("Check interval must be a positive number of minutes", field="interval_minutes")
        if interval_minutes == self.interval_minutes:
            return

        self.interval_minutes = interval_minutes
        if self.is_running:
            self.stop()
            self.start(run_immediately=False)
        logger.info(f"Check interval updated to {interval_minutes} minutes")

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "check_interval_minutes": self.interval_minutes,
            "next_check": self._job.next_run if self._job is not None else None,
            "last_check_at": self.last_check_at,
            "last_result": self.last_result,
        }

    # --- checks ---

    def trigger_manual_check(self) -> AlertScanResultDTO:
        """Runs a check now with the shorter manual dedup window."""
        logger.info("Manual inventory check triggered")
        return self.perform_inventory_check(dedup_hours=self.manual_dedup_hours)

    def perform_inventory_check(self, dedup_hours: Optional[int] = None) -> AlertScanResultDTO:
        """
        One monitoring pass. Failures on a single ledger are logged and counted; they never
        stop the pass, and an error loading ledgers ends the pass without raising.
        """
        result = AlertScanResultDTO()
        if not self._check_lock.acquire(blocking=False):
            logger.warning("Inventory check already in progress; skipping this run")
            return result

        window = self.dedup_hours if dedup_hours is None else dedup_hours
        try:
            now = self.clock()
            logger.info(f"Starting inventory check at {format_local(now)}")
            expiring_before = now + timedelta(days=self.expiry_lookahead_days)

            for batch in self.ledger_repo.iter_needing_attention(expiring_before, batch_size=self.batch_size):
                for candidate in batch:
                    result.ledgers_scanned += 1
                    self._check_ledger(candidate.ledger_id, window, result)

            logger.info(
                f"Inventory check completed. Scanned {result.ledgers_scanned} ledgers, "
                f"raised {result.alerts_raised} alerts, sent {result.notifications_sent} notifications, "
                f"skipped {result.notifications_skipped}, {result.notifications_failed} failed"
            )
        except Exception as e:
            logger.error(f"Error during inventory check: {e}", exc_info=True)
        finally:
            self.last_check_at = self.clock()
            self.last_result = result
            self._check_lock.release()
        return result

    def _check_ledger(self, ledger_id: str, dedup_hours: int, result: AlertScanResultDTO) -> None:
        try:
            ledger, alerts = self.ledger_service.scan_ledger(ledger_id)
        except Exception as e:
            logger.error(f"Inventory check failed for ledger {ledger_id}: {e}")
            result.failed_ledgers.append(ledger_id)
            return

        result.alerts_raised += len(alerts)
        for alert in alerts:
            self._dispatch(ledger, alert, dedup_hours, result)

    def _dispatch(self, ledger: StockLedger, alert: Alert, dedup_hours: int, result: AlertScanResultDTO) -> None:
        try:
            if self.notification_log.has_recent_notification(
                ledger.vendor_id, alert.type.value, ledger.ledger_id, dedup_hours
            ):
                logger.debug(f"Skipping {alert.type.value} notification for ledger {ledger.ledger_id}: sent recently")
                result.notifications_skipped += 1
                return
        except Exception as e:
            logger.warning(f"Recent-notification check failed for ledger {ledger.ledger_id}, sending anyway: {e}")

        notification = build_notification(ledger, alert)
        try:
            self.notifier.notify(notification)
        except Exception as e:
            logger.error(f"Failed to send {alert.type.value} notification for ledger {ledger.ledger_id}: {e}")
            result.notifications_failed += 1
            return

        result.notifications_sent += 1
        try:
            self.notification_log.record_notification(notification)
        except Exception as e:
            logger.warning(f"Could not record notification for ledger {ledger.ledger_id}: {e}")

    # --- reporting ---

    def generate_vendor_inventory_report(self, vendor_id: str) -> VendorInventoryReportDTO:
        ledgers = self.ledger_repo.list_by_vendor(vendor_id)
        report = VendorInventoryReportDTO(vendor_id=vendor_id, generated_at=self.clock())
        report.total_products = len(ledgers)
        report.low_stock_items = sum(1 for ledger in ledgers if ledger.status is LedgerStatus.LOW_STOCK)
        report.out_of_stock_items = sum(1 for ledger in ledgers if ledger.status is LedgerStatus.OUT_OF_STOCK)
        report.overstocked_items = sum(1 for ledger in ledgers if ledger.status is LedgerStatus.OVERSTOCKED)
        report.total_alerts = sum(1 for ledger in ledgers for alert in ledger.alerts if not alert.is_read)
        report.total_stock_value = sum(ledger.current_stock.total_value for ledger in ledgers)
        if ledgers:
            report.average_profit_margin = sum(ledger.analytics.profit_margin_percent for ledger in ledgers) / len(
                ledgers
            )
        return report

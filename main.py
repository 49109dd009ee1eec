# main.py
"""Main application entry point: hosts the inventory monitoring scheduler."""

import logging
import signal
import time
from datetime import datetime

import pytz

from src.common.config.settings import settings
from src.common.exceptions.custom_exceptions import DatabaseError
from src.common.logger_config import setup_logging
from src.listing_domain.application.listing_sync_service import ListingSyncApplicationService
from src.listing_domain.infrastructure.persistence.mysql_listing_repository import MySQLListingRepository
from src.monitoring_domain.application.inventory_monitoring_service import InventoryMonitoringService
from src.monitoring_domain.infrastructure.api_clients.webhook_notifier_client import WebhookNotifierClient
from src.monitoring_domain.infrastructure.persistence.mysql_notification_log_repository import (
    MySQLNotificationLogRepository,
)
from src.stock_ledger_domain.application.stock_ledger_service import StockLedgerApplicationService
from src.stock_ledger_domain.infrastructure.locking.ledger_lock_registry import LedgerLockRegistry
from src.stock_ledger_domain.infrastructure.persistence.mysql_stock_ledger_repository import (
    MySQLStockLedgerRepository,
)

logger = logging.getLogger(__name__)


def create_db_tables() -> None:
    """Creates the ledger, listing and notification tables (idempotent)."""
    repositories = [MySQLStockLedgerRepository(), MySQLListingRepository(), MySQLNotificationLogRepository()]
    try:
        for repository in repositories:
            repository.create_tables()
        logger.info("Database tables created/verified successfully")
    except DatabaseError as e:
        logger.error(f"Error creating database tables: {e}")
        raise
    finally:
        # Ensure connections are closed if not managed by a connection pool
        del repositories


def setup_dependencies() -> tuple[StockLedgerApplicationService, InventoryMonitoringService]:
    """Initializes and wires up the ledger, listing and monitoring services."""
    ledger_repository = MySQLStockLedgerRepository()
    listing_repository = MySQLListingRepository()

    listing_sync_service = ListingSyncApplicationService(listing_repo=listing_repository, ledger_repo=ledger_repository)
    ledger_service = StockLedgerApplicationService(
        ledger_repo=ledger_repository,
        lock_registry=LedgerLockRegistry(),
        listing_sync_service=listing_sync_service,
    )
    monitoring_service = InventoryMonitoringService(
        ledger_service=ledger_service,
        ledger_repo=ledger_repository,
        notifier=WebhookNotifierClient(),
        notification_log=MySQLNotificationLogRepository(),
    )
    return ledger_service, monitoring_service


def run_monitoring_host() -> None:
    local_tz = pytz.timezone(settings.APP_TIMEZONE)
    logger.info(f"{'=' * 80}")
    logger.info("Vendor Stock Ledger monitoring service")
    logger.info(f"Started at: {datetime.now(local_tz).strftime('%Y-%m-%d %H:%M:%S %Z')}")
    logger.info(f"Check interval: {settings.MONITOR_INTERVAL_MINUTES} minutes")
    logger.info(f"{'=' * 80}")

    create_db_tables()
    _, monitoring_service = setup_dependencies()

    running = True

    def handle_shutdown(signum, frame) -> None:
        nonlocal running
        logger.info(f"Received signal {signum}, shutting down...")
        running = False

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    monitoring_service.start()
    try:
        while running:
            time.sleep(1)
    finally:
        monitoring_service.stop()
        logger.info(f"Stopped at: {datetime.now(local_tz).strftime('%Y-%m-%d %H:%M:%S %Z')}")


if __name__ == "__main__":
    setup_logging()
    run_monitoring_host()

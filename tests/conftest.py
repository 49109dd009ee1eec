# tests/conftest.py
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import pytz

from src.common.config.settings import settings
from src.common.dtos.ledger_dtos import PurchaseLotDTO
from src.listing_domain.domain.entities.listing import Listing
from src.listing_domain.domain.repositories.listing_repository import IListingRepository
from src.monitoring_domain.domain.notifier import INotifier
from src.monitoring_domain.infrastructure.persistence.in_memory_notification_log import InMemoryNotificationLog
from src.stock_ledger_domain.application.stock_ledger_service import StockLedgerApplicationService
from src.stock_ledger_domain.domain.entities.lot import Lot
from src.stock_ledger_domain.domain.entities.stock_ledger import LedgerSettings, StockLedger
from src.stock_ledger_domain.infrastructure.persistence.in_memory_stock_ledger_repository import (
    InMemoryStockLedgerRepository,
)

START = datetime(2024, 6, 1, 8, 0, 0, tzinfo=pytz.utc)


class FakeClock:
    """Settable clock so tests control every timestamp the services write."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def mock_settings_defaults(mocker) -> None:
    """Pins the ledger defaults so tests don't depend on the local .env file."""
    mocker.patch.object(settings, "DEFAULT_REORDER_LEVEL", 10.0)
    mocker.patch.object(settings, "DEFAULT_MAX_STOCK_LEVEL", 100.0)
    mocker.patch.object(settings, "DEFAULT_REORDER_QUANTITY", 50.0)
    mocker.patch.object(settings, "LOW_MARGIN_THRESHOLD_PERCENT", 10.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def make_lot():
    """Factory for lots acquired `days_ago` days before START."""

    def _make(quantity: float, unit_cost: float, days_ago: int = 0, unit: str = "kg", **kwargs) -> Lot:
        return Lot(
            acquired_quantity=quantity,
            unit_cost=unit_cost,
            unit=unit,
            acquisition_date=START - timedelta(days=days_ago),
            **kwargs,
        )

    return _make


@pytest.fixture
def empty_ledger() -> StockLedger:
    return StockLedger.open(
        "vendor-1",
        "product-tomato",
        unit="kg",
        settings=LedgerSettings(reorder_level=10, max_stock_level=200),
        now=START,
    )


@pytest.fixture
def ledger_repo() -> InMemoryStockLedgerRepository:
    return InMemoryStockLedgerRepository()


@pytest.fixture
def ledger_service(ledger_repo, clock) -> StockLedgerApplicationService:
    """Ledger service over the in-memory repository, without listing sync."""
    return StockLedgerApplicationService(ledger_repo=ledger_repo, clock=clock)


@pytest.fixture
def sample_purchase_dto() -> PurchaseLotDTO:
    return PurchaseLotDTO(acquired_quantity=100, unit_cost=2.0, unit="kg", acquisition_date=START)


@pytest.fixture
def mock_listing_repository() -> Mock:
    return Mock(spec=IListingRepository)


@pytest.fixture
def mock_notifier() -> Mock:
    return Mock(spec=INotifier)


@pytest.fixture
def notification_log(clock) -> InMemoryNotificationLog:
    return InMemoryNotificationLog(clock=clock)


@pytest.fixture
def sample_listing() -> Listing:
    return Listing(
        listing_id="listing-1",
        vendor_id="vendor-1",
        ledger_id="ledger-1",
        advertised_quantity=50,
        unit="kg",
        price_per_unit=5.0,
    )


@pytest.fixture
def now() -> datetime:
    """The instant the fake clock starts at; make_lot dates lots relative to it."""
    return START

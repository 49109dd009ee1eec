# tests/test_listing_domain/test_application/test_listing_sync_service.py

import pytest

from src.common.exceptions.custom_exceptions import DatabaseError, NotFoundError, ValidationError
from src.listing_domain.application.listing_sync_service import ListingSyncApplicationService
from src.listing_domain.domain.entities.listing import Listing, ListingStatus


@pytest.fixture
def stocked_ledger(ledger_repo, empty_ledger, make_lot, now):
    empty_ledger.add_lot(make_lot(30, 2.0), now)
    ledger_repo.add(empty_ledger)
    return empty_ledger


@pytest.fixture
def sync_service(mock_listing_repository, ledger_repo) -> ListingSyncApplicationService:
    return ListingSyncApplicationService(listing_repo=mock_listing_repository, ledger_repo=ledger_repo)


def _listing(listing_id: str, ledger_id: str, quantity: float) -> Listing:
    return Listing(listing_id, "vendor-1", ledger_id, quantity, "kg", 5.0)


def test_sync_ledger_listings_clamps_and_saves(sync_service, mock_listing_repository, stocked_ledger) -> None:
    over = _listing("listing-over", stocked_ledger.ledger_id, 50)
    under = _listing("listing-under", stocked_ledger.ledger_id, 10)
    mock_listing_repository.list_by_ledger.return_value = [over, under]

    results = sync_service.sync_ledger_listings(stocked_ledger)

    assert [(result.listing_id, result.success, result.new_quantity) for result in results] == [
        ("listing-over", True, 30),
        ("listing-under", True, 10),
    ]
    assert mock_listing_repository.save_availability.call_count == 2
    mock_listing_repository.list_by_ledger.assert_called_once_with(stocked_ledger.ledger_id)


def test_sync_ledger_listings_isolates_failures(sync_service, mock_listing_repository, stocked_ledger) -> None:
    first = _listing("listing-1", stocked_ledger.ledger_id, 50)
    second = _listing("listing-2", stocked_ledger.ledger_id, 40)
    mock_listing_repository.list_by_ledger.return_value = [first, second]
    mock_listing_repository.save_availability.side_effect = [DatabaseError("write failed"), None]

    results = sync_service.sync_ledger_listings(stocked_ledger)

    assert [result.success for result in results] == [False, True]
    assert "write failed" in results[0].message
    assert results[1].new_quantity == 30


def test_sync_vendor_listings_reports_missing_ledger(sync_service, mock_listing_repository, stocked_ledger) -> None:
    mock_listing_repository.list_by_vendor.return_value = [
        _listing("listing-1", stocked_ledger.ledger_id, 50),
        _listing("listing-2", "ledger-gone", 5),
        _listing("listing-3", stocked_ledger.ledger_id, 20),
    ]

    results = sync_service.sync_vendor_listings("vendor-1")

    assert [result.success for result in results] == [True, False, True]
    assert results[1].message == "Ledger not found: ledger-gone"
    assert results[0].new_quantity == 30
    assert mock_listing_repository.save_availability.call_count == 2


def test_update_advertised_quantity_within_stock(sync_service, mock_listing_repository, stocked_ledger) -> None:
    listing = _listing("listing-1", stocked_ledger.ledger_id, 0)
    listing.status = ListingStatus.OUT_OF_STOCK
    mock_listing_repository.get_by_id.return_value = listing

    updated = sync_service.update_advertised_quantity("listing-1", 25)

    assert updated.advertised_quantity == 25
    assert updated.status is ListingStatus.ACTIVE
    mock_listing_repository.save_availability.assert_called_once_with(listing)


def test_update_advertised_quantity_rejects_overselling(sync_service, mock_listing_repository, stocked_ledger) -> None:
    mock_listing_repository.get_by_id.return_value = _listing("listing-1", stocked_ledger.ledger_id, 10)

    with pytest.raises(ValidationError):
        sync_service.update_advertised_quantity("listing-1", 31)
    mock_listing_repository.save_availability.assert_not_called()


def test_update_advertised_quantity_rejects_negative(sync_service, mock_listing_repository, stocked_ledger) -> None:
    mock_listing_repository.get_by_id.return_value = _listing("listing-1", stocked_ledger.ledger_id, 10)

    with pytest.raises(ValidationError):
        sync_service.update_advertised_quantity("listing-1", -5)
    mock_listing_repository.save_availability.assert_not_called()


def test_update_advertised_quantity_missing_listing(sync_service, mock_listing_repository) -> None:
    mock_listing_repository.get_by_id.return_value = None

    with pytest.raises(NotFoundError):
        sync_service.update_advertised_quantity("missing", 1)


def test_check_listing_health_uses_configured_threshold(
    sync_service, mock_listing_repository, stocked_ledger, mocker
) -> None:
    listing = _listing("listing-1", stocked_ledger.ledger_id, 10)
    listing.price_per_unit = 2.5
    mock_listing_repository.get_by_id.return_value = listing

    mocker.patch("src.listing_domain.application.listing_sync_service.settings.LOW_MARGIN_THRESHOLD_PERCENT", 25.0)
    report = sync_service.check_listing_health("listing-1")

    assert [issue.type for issue in report.issues] == ["low_profit_margin"]


def test_check_listing_health_missing_ledger(sync_service, mock_listing_repository) -> None:
    mock_listing_repository.get_by_id.return_value = _listing("listing-1", "ledger-gone", 1)

    with pytest.raises(NotFoundError):
        sync_service.check_listing_health("listing-1")

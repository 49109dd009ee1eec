# tests/test_monitoring_domain/test_application/test_inventory_monitoring_service.py
"""Tests for the Inventory Monitoring Service."""

from unittest.mock import Mock

import pytest

from src.common.dtos.ledger_dtos import PurchaseLotDTO
from src.common.exceptions.custom_exceptions import APIError, DatabaseError, ValidationError
from src.monitoring_domain.application.inventory_monitoring_service import (
    InventoryMonitoringService,
    action_text,
    alert_title,
    build_notification,
    severity_to_priority,
)
from src.monitoring_domain.domain.notifier import IRecentNotificationChecker
from src.stock_ledger_domain.domain.entities.enums import AlertSeverity, AlertType
from src.stock_ledger_domain.domain.entities.stock_ledger import Alert


@pytest.fixture
def monitoring_service(ledger_service, ledger_repo, mock_notifier, notification_log, clock):
    return InventoryMonitoringService(
        ledger_service=ledger_service,
        ledger_repo=ledger_repo,
        notifier=mock_notifier,
        notification_log=notification_log,
        clock=clock,
        interval_minutes=30,
        batch_size=10,
        dedup_hours=24,
        manual_dedup_hours=1,
        expiry_lookahead_days=7,
        poll_seconds=0.01,
    )


def _stock(ledger_service, product_id: str, purchased: float, sold: float = 0):
    ledger = ledger_service.record_purchase(
        "vendor-1", product_id, PurchaseLotDTO(acquired_quantity=purchased, unit_cost=2.0, unit="kg")
    )
    if sold:
        ledger_service.record_sale(ledger.ledger_id, sold, 3.0, f"order-{product_id}")
    return ledger.ledger_id


def test_check_notifies_new_low_stock_alert(monitoring_service, ledger_service, mock_notifier) -> None:
    ledger_id = _stock(ledger_service, "product-1", 5, sold=1)

    result = monitoring_service.perform_inventory_check()

    assert result.ledgers_scanned == 1
    assert result.alerts_raised == 1
    assert result.notifications_sent == 1
    notification = mock_notifier.notify.call_args[0][0]
    assert notification.ledger_id == ledger_id
    assert notification.alert_type == "low_stock"
    assert notification.title == "Low Stock Alert: product-1"
    assert notification.priority == "high"
    assert notification.action_text == "Restock Now"
    assert notification.action_required is True
    assert monitoring_service.last_result is result


def test_open_alert_is_not_raised_twice(monitoring_service, ledger_service, mock_notifier, clock) -> None:
    _stock(ledger_service, "product-1", 5, sold=1)

    monitoring_service.perform_inventory_check()
    clock.advance(hours=1)
    second = monitoring_service.perform_inventory_check()

    assert second.alerts_raised == 0
    assert mock_notifier.notify.call_count == 1


def test_dedup_window_suppresses_repeat_notifications(
    monitoring_service, ledger_service, mock_notifier, clock
) -> None:
    ledger_id = _stock(ledger_service, "product-1", 5, sold=1)
    monitoring_service.perform_inventory_check()

    ledger_service.mark_alerts_read(ledger_id)
    clock.advance(hours=1)
    within_window = monitoring_service.perform_inventory_check()

    assert within_window.alerts_raised == 1
    assert within_window.notifications_skipped == 1
    assert mock_notifier.notify.call_count == 1

    ledger_service.mark_alerts_read(ledger_id)
    clock.advance(hours=25)
    after_window = monitoring_service.perform_inventory_check()

    assert after_window.notifications_sent == 1
    assert mock_notifier.notify.call_count == 2


def test_manual_check_uses_short_dedup_window(monitoring_service, ledger_service, mock_notifier, clock) -> None:
    ledger_id = _stock(ledger_service, "product-1", 5, sold=1)
    monitoring_service.perform_inventory_check()

    ledger_service.mark_alerts_read(ledger_id)
    clock.advance(hours=2)
    scheduled = monitoring_service.perform_inventory_check()
    assert scheduled.notifications_skipped == 1

    ledger_service.mark_alerts_read(ledger_id)
    manual = monitoring_service.trigger_manual_check()

    assert manual.notifications_sent == 1
    assert mock_notifier.notify.call_count == 2


def test_failing_ledger_does_not_stop_the_check(
    monitoring_service, ledger_service, mock_notifier, mocker
) -> None:
    broken_id = _stock(ledger_service, "product-broken", 5, sold=1)
    healthy_id = _stock(ledger_service, "product-ok", 5, sold=1)
    real_scan = ledger_service.scan_ledger

    def scan(ledger_id):
        if ledger_id == broken_id:
            raise RuntimeError("corrupt document")
        return real_scan(ledger_id)

    mocker.patch.object(ledger_service, "scan_ledger", side_effect=scan)
    result = monitoring_service.perform_inventory_check()

    assert result.ledgers_scanned == 2
    assert result.failed_ledgers == [broken_id]
    assert result.notifications_sent == 1
    assert mock_notifier.notify.call_args[0][0].ledger_id == healthy_id


def test_notifier_failure_is_counted_and_not_logged_as_sent(
    monitoring_service, ledger_service, mock_notifier, notification_log
) -> None:
    _stock(ledger_service, "product-1", 5, sold=5)
    mock_notifier.notify.side_effect = APIError("webhook down")

    result = monitoring_service.perform_inventory_check()

    assert result.alerts_raised == 1
    assert result.notifications_failed == 1
    assert result.notifications_sent == 0
    assert notification_log.sent == []


def test_dedup_lookup_failure_sends_anyway(ledger_service, ledger_repo, mock_notifier, clock) -> None:
    failing_log = Mock(spec=IRecentNotificationChecker)
    failing_log.has_recent_notification.side_effect = DatabaseError("log unavailable")
    service = InventoryMonitoringService(ledger_service, ledger_repo, mock_notifier, failing_log, clock=clock)
    _stock(ledger_service, "product-1", 5, sold=1)

    result = service.perform_inventory_check()

    assert result.notifications_sent == 1
    failing_log.record_notification.assert_called_once()


def test_repository_error_ends_check_without_raising(monitoring_service, ledger_repo, clock, mocker) -> None:
    mocker.patch.object(ledger_repo, "iter_needing_attention", side_effect=DatabaseError("connection lost"))

    result = monitoring_service.perform_inventory_check()

    assert result.ledgers_scanned == 0
    assert monitoring_service.last_check_at == clock.now


def test_overlapping_check_is_skipped(monitoring_service, ledger_service, mock_notifier) -> None:
    _stock(ledger_service, "product-1", 5, sold=1)

    with monitoring_service._check_lock:
        result = monitoring_service.perform_inventory_check()

    assert result.ledgers_scanned == 0
    mock_notifier.notify.assert_not_called()


def test_healthy_ledgers_are_not_scanned(monitoring_service, ledger_service, mock_notifier) -> None:
    _stock(ledger_service, "product-1", 50, sold=1)

    result = monitoring_service.perform_inventory_check()

    assert result.ledgers_scanned == 0
    mock_notifier.notify.assert_not_called()


def test_set_check_interval_validates(monitoring_service) -> None:
    with pytest.raises(ValidationError):
        monitoring_service.set_check_interval(0)

    monitoring_service.set_check_interval(15)
    assert monitoring_service.get_status()["check_interval_minutes"] == 15


def test_start_and_stop(monitoring_service) -> None:
    monitoring_service.start(run_immediately=False)
    try:
        status = monitoring_service.get_status()
        assert status["is_running"] is True
        assert status["next_check"] is not None

        monitoring_service.start()
        assert monitoring_service.is_running

        monitoring_service.set_check_interval(5)
        assert monitoring_service.is_running
        assert monitoring_service._job.interval == 5
    finally:
        monitoring_service.stop()

    status = monitoring_service.get_status()
    assert status["is_running"] is False
    assert status["next_check"] is None

    monitoring_service.stop()


def test_vendor_inventory_report(monitoring_service, ledger_service, clock) -> None:
    low_id = _stock(ledger_service, "product-low", 5, sold=1)
    _stock(ledger_service, "product-out", 5, sold=5)
    _stock(ledger_service, "product-over", 150)
    ledger_service.run_alert_scan(low_id)

    report = monitoring_service.generate_vendor_inventory_report("vendor-1")

    assert report.total_products == 3
    assert report.low_stock_items == 1
    assert report.out_of_stock_items == 1
    assert report.overstocked_items == 1
    assert report.total_alerts == 1
    assert report.total_stock_value == pytest.approx(4 * 2.0 + 150 * 2.0)
    assert report.generated_at == clock.now


def test_empty_vendor_report(monitoring_service) -> None:
    report = monitoring_service.generate_vendor_inventory_report("vendor-none")

    assert report.total_products == 0
    assert report.average_profit_margin == 0.0


def test_notification_mappings(empty_ledger, now) -> None:
    assert alert_title(AlertType.OUT_OF_STOCK, "apples") == "Out of Stock: apples"
    assert alert_title(AlertType.NO_MOVEMENT, "apples") == "Low Sales Activity: apples"
    assert severity_to_priority(AlertSeverity.CRITICAL) == "urgent"
    assert severity_to_priority(AlertSeverity.MEDIUM) == "normal"
    assert action_text(AlertType.OVERSTOCK) == "Adjust Pricing"

    alert = Alert(type=AlertType.OVERSTOCK, message="too much", severity=AlertSeverity.MEDIUM, created_at=now)
    notification = build_notification(empty_ledger, alert)

    assert notification.action_required is False
    assert notification.reorder_level == 10
    assert notification.to_payload()["created_at"] == now.isoformat()

# src/stock_ledger_domain/domain/services/alert_engine.py
"""Derives stock-health alerts from ledger state and merges them into the ledger's alert log."""

from datetime import datetime, timedelta

from src.stock_ledger_domain.domain.entities.enums import AlertSeverity, AlertType
from src.stock_ledger_domain.domain.entities.stock_ledger import Alert, StockLedger

DEFAULT_NO_MOVEMENT_DAYS = 30


def evaluate_conditions(
    ledger: StockLedger, now: datetime, no_movement_days: int = DEFAULT_NO_MOVEMENT_DAYS
) -> list[Alert]:
    """Every alert condition that currently holds, without looking at the existing alert log."""
    stock = ledger.current_stock
    settings = ledger.settings
    alerts: list[Alert] = []

    if stock.total_quantity <= settings.reorder_level:
        alerts.append(
            Alert(
                type=AlertType.LOW_STOCK,
                message=(
                    f"Stock is running low. Current: {stock.total_quantity:g}, "
                    f"Reorder level: {settings.reorder_level:g}"
                ),
                severity=AlertSeverity.CRITICAL if stock.total_quantity == 0 else AlertSeverity.HIGH,
                created_at=now,
            )
        )

    if stock.total_quantity >= settings.max_stock_level:
        alerts.append(
            Alert(
                type=AlertType.OVERSTOCK,
                message=(
                    f"Stock is above maximum level. Current: {stock.total_quantity:g}, "
                    f"Max: {settings.max_stock_level:g}"
                ),
                severity=AlertSeverity.MEDIUM,
                created_at=now,
            )
        )

    expired_lots = [lot for lot in ledger.active_lots() if lot.remaining_quantity > 0 and lot.is_expired(now)]
    if expired_lots:
        expired_quantity = sum(lot.remaining_quantity for lot in expired_lots)
        alerts.append(
            Alert(
                type=AlertType.EXPIRED_ITEMS,
                message=f"{expired_quantity:g} {stock.unit} of stock has expired",
                severity=AlertSeverity.HIGH,
                created_at=now,
            )
        )

    cutoff = now - timedelta(days=no_movement_days)
    last_sold_at = ledger.analytics.last_sold_at
    if stock.total_quantity > 0 and (last_sold_at is None or last_sold_at < cutoff):
        alerts.append(
            Alert(
                type=AlertType.NO_MOVEMENT,
                message=f"No stock movement in the last {no_movement_days} days",
                severity=AlertSeverity.MEDIUM,
                created_at=now,
            )
        )

    return alerts


def derive_alerts(
    ledger: StockLedger, now: datetime, no_movement_days: int = DEFAULT_NO_MOVEMENT_DAYS
) -> list[Alert]:
    """
    Appends each currently-holding alert to ledger.alerts unless an unread, unresolved
    alert of the same type is already there. Returns only the alerts actually appended.
    """
    appended: list[Alert] = []
    for alert in evaluate_conditions(ledger, now, no_movement_days):
        if ledger.open_alert(alert.type) is not None:
            continue
        ledger.alerts.append(alert)
        appended.append(alert)
    return appended


def resolve_cleared_alerts(
    ledger: StockLedger, now: datetime, no_movement_days: int = DEFAULT_NO_MOVEMENT_DAYS
) -> list[Alert]:
    """Stamps resolved_at on unresolved alerts whose condition no longer holds."""
    holding = {alert.type for alert in evaluate_conditions(ledger, now, no_movement_days)}
    if ledger.current_stock.total_quantity == 0:
        holding.add(AlertType.OUT_OF_STOCK)

    resolved: list[Alert] = []
    for alert in ledger.alerts:
        if alert.resolved_at is None and alert.type not in holding:
            alert.resolved_at = now
            resolved.append(alert)
    return resolved

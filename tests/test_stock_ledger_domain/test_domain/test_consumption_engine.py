# tests/test_stock_ledger_domain/test_domain/test_consumption_engine.py
"""Tests for FIFO sale consumption."""

import copy

import pytest

from src.common.exceptions.custom_exceptions import InsufficientStockError, ValidationError
from src.stock_ledger_domain.domain.entities.enums import LedgerStatus, LotStatus, MovementType
from src.stock_ledger_domain.domain.services import consumption_engine


@pytest.fixture
def two_lot_ledger(empty_ledger, make_lot, now):
    """Lot A (older, landed 1.0) and lot B (newer, landed 3.0), five units each."""
    lot_a = make_lot(5, 1.0, days_ago=2, batch_id="BATCH-A")
    lot_b = make_lot(5, 2.0, days_ago=1, batch_id="BATCH-B", transport_cost=1.0)
    # Added newest first so FIFO can't rely on insertion order
    empty_ledger.add_lot(lot_b, now)
    empty_ledger.add_lot(lot_a, now)
    return empty_ledger


def test_consume_takes_oldest_lot_first(two_lot_ledger, now) -> None:
    result = consumption_engine.consume(two_lot_ledger, 7, 4.0, "order-1", now)

    lot_a = two_lot_ledger.find_lot("BATCH-A")
    lot_b = two_lot_ledger.find_lot("BATCH-B")
    assert lot_a.remaining_quantity == 0
    assert lot_a.status is LotStatus.SOLD_OUT
    assert lot_b.remaining_quantity == 3
    assert lot_b.status is LotStatus.ACTIVE

    assert [(c.batch_id, c.quantity_taken) for c in result.consumed_lots] == [("BATCH-A", 5), ("BATCH-B", 2)]
    assert result.cost_of_goods_sold == pytest.approx(5 * 1.0 + 2 * 3.0)
    assert result.gross_profit == pytest.approx(7 * 4.0 - 11.0)
    assert two_lot_ledger.current_stock.total_quantity == 3


def test_consume_updates_sale_analytics(two_lot_ledger, now) -> None:
    consumption_engine.consume(two_lot_ledger, 4, 5.0, "order-1", now)
    consumption_engine.consume(two_lot_ledger, 2, 2.0, "order-2", now)

    analytics = two_lot_ledger.analytics
    assert analytics.total_sold_quantity == 6
    assert analytics.total_sold_value == pytest.approx(24.0)
    assert analytics.average_sale_price == pytest.approx(4.0)
    # COGS: 4 x 1.0, then 1 x 1.0 + 1 x 3.0
    assert analytics.gross_profit == pytest.approx(24.0 - 8.0)
    assert analytics.profit_margin_percent == pytest.approx(16.0 / 24.0 * 100)
    assert analytics.last_sold_at == now
    assert analytics.turnover_rate == pytest.approx(6 / 10)

    sale = analytics.movements[-1]
    assert sale.type is MovementType.SALE
    assert sale.quantity == -2
    assert sale.reference_id == "order-2"


def test_consume_more_than_available_changes_nothing(two_lot_ledger, now) -> None:
    before = copy.deepcopy(two_lot_ledger.to_dict())

    with pytest.raises(InsufficientStockError) as exc_info:
        consumption_engine.consume(two_lot_ledger, 11, 4.0, "order-1", now)

    assert exc_info.value.requested == 11
    assert exc_info.value.available == 10
    assert two_lot_ledger.to_dict() == before


@pytest.mark.parametrize("quantity", [0, -3])
def test_consume_rejects_non_positive_quantity(two_lot_ledger, now, quantity) -> None:
    with pytest.raises(ValidationError):
        consumption_engine.consume(two_lot_ledger, quantity, 4.0, None, now)


def test_consume_rejects_negative_price(two_lot_ledger, now) -> None:
    with pytest.raises(ValidationError):
        consumption_engine.consume(two_lot_ledger, 1, -0.5, None, now)


def test_consume_skips_expired_lots(empty_ledger, make_lot, now) -> None:
    stale = make_lot(5, 1.0, days_ago=10, batch_id="BATCH-OLD")
    fresh = make_lot(5, 1.0, days_ago=1, batch_id="BATCH-NEW")
    empty_ledger.add_lot(stale, now)
    empty_ledger.add_lot(fresh, now)
    stale.status = LotStatus.EXPIRED
    empty_ledger.recompute(now)

    result = consumption_engine.consume(empty_ledger, 3, 2.0, None, now)

    assert [c.batch_id for c in result.consumed_lots] == ["BATCH-NEW"]
    assert stale.remaining_quantity == 5


def test_selling_everything_leaves_ledger_out_of_stock(empty_ledger, make_lot, now) -> None:
    empty_ledger.add_lot(make_lot(100, 2.0), now)

    consumption_engine.consume(empty_ledger, 95, 3.0, "order-1", now)
    assert empty_ledger.status is LedgerStatus.LOW_STOCK

    consumption_engine.consume(empty_ledger, 5, 3.0, "order-2", now)
    assert empty_ledger.status is LedgerStatus.OUT_OF_STOCK
    assert empty_ledger.current_stock.total_quantity == 0
    assert empty_ledger.current_stock.average_landed_cost == 0


def test_selling_all_decimal_stock_leaves_nothing_behind(empty_ledger, make_lot, now) -> None:
    empty_ledger.add_lot(make_lot(1.1, 2.0, days_ago=2, batch_id="BATCH-A"), now)
    empty_ledger.add_lot(make_lot(1.2, 2.0, days_ago=1, batch_id="BATCH-B"), now)

    result = consumption_engine.consume(empty_ledger, 2.3, 3.0, "order-kg", now)

    assert empty_ledger.current_stock.total_quantity == 0
    assert empty_ledger.status is LedgerStatus.OUT_OF_STOCK
    assert all(lot.remaining_quantity == 0 for lot in empty_ledger.lots)
    assert all(lot.status is LotStatus.SOLD_OUT for lot in empty_ledger.lots)
    assert result.cost_of_goods_sold == pytest.approx(2.3 * 2.0)


def test_decimal_sale_matching_float_sum_is_not_rejected(empty_ledger, make_lot, now) -> None:
    empty_ledger.add_lot(make_lot(1.1, 2.0, days_ago=3), now)
    empty_ledger.add_lot(make_lot(1.1, 2.0, days_ago=2), now)
    empty_ledger.add_lot(make_lot(1.1, 2.0, days_ago=1), now)

    consumption_engine.consume(empty_ledger, 3.3, 3.0, None, now)

    assert empty_ledger.status is LedgerStatus.OUT_OF_STOCK

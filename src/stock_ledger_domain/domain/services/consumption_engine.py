# src/stock_ledger_domain/domain/services/consumption_engine.py
"""Sale-driven FIFO consumption of lots and the profit figures that follow from it."""

import logging
from datetime import datetime
from typing import Optional

from src.common.dtos.ledger_dtos import ConsumedLotDTO, ConsumeResultDTO
from src.common.exceptions.custom_exceptions import InsufficientStockError, ValidationError
from src.stock_ledger_domain.domain.entities.enums import LotStatus, MovementType
from src.stock_ledger_domain.domain.entities.lot import QUANTITY_TOLERANCE, Lot, is_zero_quantity
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


def available_quantity(ledger: StockLedger) -> float:
    return sum(lot.remaining_quantity for lot in ledger.active_lots())


def check_available(ledger: StockLedger, quantity: float) -> None:
    """Rejects non-positive quantities and anything above what the active lots hold."""
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity must be positive", field="quantity")
    available = available_quantity(ledger)
    if quantity - available > QUANTITY_TOLERANCE:
        raise InsufficientStockError(requested=quantity, available=available)


def take_fifo(lots: list[Lot], quantity: float, depleted_status: LotStatus) -> list[ConsumedLotDTO]:
    """
    Walks `lots` in the given order taking min(remaining, still needed) from each.
    Callers pass ledger.fifo_lots() and must have checked availability first.
    """
    taken_from: list[ConsumedLotDTO] = []
    still_needed = quantity
    for lot in lots:
        if still_needed <= 0 or is_zero_quantity(still_needed):
            break
        taken = lot.take(still_needed, depleted_status)
        if taken <= 0:
            continue
        still_needed -= taken
        taken_from.append(
            ConsumedLotDTO(batch_id=lot.batch_id, quantity_taken=taken, landed_unit_cost=lot.landed_unit_cost)
        )
    return taken_from


def consume(
    ledger: StockLedger,
    quantity: float,
    sale_price_per_unit: float,
    reference_id: Optional[str],
    now: datetime,
) -> ConsumeResultDTO:
    """
    Records a sale: consumes lots oldest first, books revenue and cost of goods sold,
    appends a sale movement and recomputes the ledger.

    Raises InsufficientStockError before touching anything if the ledger can't cover it.
    """
    if sale_price_per_unit is None or sale_price_per_unit < 0:
        raise ValidationError("Sale price cannot be negative", field="sale_price_per_unit")
    check_available(ledger, quantity)

    consumed_lots = take_fifo(ledger.fifo_lots(), quantity, LotStatus.SOLD_OUT)

    revenue = sale_price_per_unit * quantity
    cost_of_goods_sold = sum(c.landed_unit_cost * c.quantity_taken for c in consumed_lots)
    sale_profit = revenue - cost_of_goods_sold

    analytics = ledger.analytics
    analytics.total_sold_quantity += quantity
    analytics.total_sold_value += revenue
    analytics.gross_profit += sale_profit
    analytics.average_sale_price = (
        analytics.total_sold_value / analytics.total_sold_quantity if analytics.total_sold_quantity > 0 else 0.0
    )
    analytics.profit_margin_percent = (
        analytics.gross_profit / analytics.total_sold_value * 100 if analytics.total_sold_value > 0 else 0.0
    )
    analytics.last_sold_at = now

    ledger.record_movement(MovementType.SALE, -quantity, now, reason="Stock sold", reference_id=reference_id)
    ledger.recompute(now)

    logger.debug(
        f"Ledger {ledger.ledger_id}: sold {quantity} from {len(consumed_lots)} lot(s), "
        f"COGS {cost_of_goods_sold:.2f}, profit {sale_profit:.2f}"
    )
    return ConsumeResultDTO(
        ledger_id=ledger.ledger_id,
        quantity=quantity,
        sale_price_per_unit=sale_price_per_unit,
        consumed_lots=consumed_lots,
        cost_of_goods_sold=cost_of_goods_sold,
        gross_profit=sale_profit,
        reference_id=reference_id,
    )

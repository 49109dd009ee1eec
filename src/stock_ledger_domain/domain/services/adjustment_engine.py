# src/stock_ledger_domain/domain/services/adjustment_engine.py
"""Non-sale stock reductions (wastage, damage, returns) and expiry marking."""

import logging
from datetime import datetime
from typing import Optional

from src.common.dtos.ledger_dtos import ConsumedLotDTO
from src.common.exceptions.custom_exceptions import ValidationError
from src.stock_ledger_domain.domain.entities.enums import AdjustmentType, LotStatus, MovementType
from src.stock_ledger_domain.domain.entities.lot import Lot
from src.stock_ledger_domain.domain.entities.stock_ledger import StockLedger
from src.stock_ledger_domain.domain.services.consumption_engine import check_available, take_fifo

logger = logging.getLogger(__name__)


def parse_adjustment_type(value: "AdjustmentType | str") -> AdjustmentType:
    try:
        return AdjustmentType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in AdjustmentType)
        raise ValidationError(f"Invalid adjustment type '{value}' (expected one of: {allowed})", field="type")


def adjust(
    ledger: StockLedger,
    adjustment_type: "AdjustmentType | str",
    quantity: float,
    reason: Optional[str],
    now: datetime,
    target_batch_id: Optional[str] = None,
) -> list[ConsumedLotDTO]:
    """
    Removes stock without touching sale analytics.

    With target_batch_id, only that lot is reduced provided it is active and holds
    enough; otherwise the reduction runs FIFO across all active lots.
    """
    adjustment_type = parse_adjustment_type(adjustment_type)
    check_available(ledger, quantity)

    depleted_status = adjustment_type.depleted_lot_status
    target: Optional[Lot] = ledger.find_lot(target_batch_id) if target_batch_id else None

    if target is not None and target.is_available and target.remaining_quantity >= quantity:
        taken = target.take(quantity, depleted_status)
        affected = [
            ConsumedLotDTO(batch_id=target.batch_id, quantity_taken=taken, landed_unit_cost=target.landed_unit_cost)
        ]
    else:
        if target is not None:
            logger.info(
                f"Batch {target_batch_id} cannot cover {quantity} on ledger {ledger.ledger_id}; falling back to FIFO"
            )
        affected = take_fifo(ledger.fifo_lots(), quantity, depleted_status)

    movement_reason = reason
    if adjustment_type is AdjustmentType.DAMAGE:
        movement_reason = f"damage: {reason}" if reason else "damage"

    ledger.record_movement(
        adjustment_type.movement_type, -quantity, now, reason=movement_reason, reference_id=target_batch_id
    )
    ledger.recompute(now)
    return affected


def expire_lots(ledger: StockLedger, now: datetime) -> list[Lot]:
    """
    Moves active lots whose expiry date has passed to `expired`. Their remaining quantity
    is kept for the record but no longer counts as stock.
    """
    expired: list[Lot] = []
    for lot in ledger.active_lots():
        if lot.remaining_quantity > 0 and lot.is_expired(now):
            lot.status = LotStatus.EXPIRED
            expired.append(lot)
            ledger.record_movement(
                MovementType.ADJUSTMENT, -lot.remaining_quantity, now, reason="Lot expired", reference_id=lot.batch_id
            )

    if expired:
        ledger.recompute(now)
    return expired

from typing import Optional
import logging

from stockroom.ledger.deltas import Direction, TransactionType
from stockroom.ledger.recorder import RecordedMovement, TransactionRecorder, validate_quantity
from stockroom.models import Stock


logger = logging.getLogger(__name__)

DEFAULT_ADJUSTMENT_NOTE = "Stock adjustment"


class AdjustmentResolver:
    """Turns "set on-hand to N" into a signed Adjustment entry.

    The difference is taken against the balance the recorder reads under its
    lock, so no other movement can land between the read and the write and
    the ledger still replays to the balance afterwards.
    """

    def __init__(self, recorder: TransactionRecorder):
        self.recorder = recorder

    def set_absolute(
        self,
        product_id: int,
        new_quantity: int,
        notes: Optional[str] = None,
        *,
        actor: Optional[int],
    ) -> Stock:
        return self.resolve(product_id, new_quantity, notes, actor=actor).stock

    def resolve(
        self,
        product_id: int,
        new_quantity: int,
        notes: Optional[str] = None,
        *,
        actor: Optional[int],
    ) -> RecordedMovement:
        validate_quantity(new_quantity, allow_zero=True)

        def plan(stock: Stock):
            difference = new_quantity - stock.quantity_on_hand
            if difference == 0:
                return None
            direction = Direction.IN if difference > 0 else Direction.OUT
            logger.debug(
                "Adjusting product_id=%s from %s to %s (%s %s)",
                product_id,
                stock.quantity_on_hand,
                new_quantity,
                direction.value,
                abs(difference),
            )
            return TransactionType.ADJUSTMENT, direction, abs(difference)

        return self.recorder.apply_plan(
            product_id,
            TransactionType.ADJUSTMENT.value,
            plan,
            notes=notes or DEFAULT_ADJUSTMENT_NOTE,
            actor=actor,
        )

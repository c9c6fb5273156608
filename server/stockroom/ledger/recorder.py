from dataclasses import dataclass
from typing import Callable, Optional
import logging
import time

from stockroom.ledger.audit import AuditFact, AuditHook
from stockroom.ledger.deltas import AUDIT_ACTIONS, Direction, TransactionType, resolve_direction, signed_delta
from stockroom.ledger.errors import (
    BalanceChangedError,
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransactionError,
    StoreUnavailableError,
)
from stockroom.ledger.store import LedgerStore
from stockroom.models import Stock, StockTransaction


logger = logging.getLogger(__name__)

# Given the locked balance, what to book: (type, direction, quantity), or None for nothing.
MovementPlan = Callable[[Stock], Optional[tuple[TransactionType, Direction, int]]]


def validate_quantity(quantity, *, allow_zero: bool = False) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(f"Quantity must be an integer, got {quantity!r}.")
    if quantity < 0 or (quantity == 0 and not allow_zero):
        bound = "0 or more" if allow_zero else "at least 1"
        raise InvalidQuantityError(f"Quantity must be {bound}, got {quantity}.")
    return quantity


def _coerce_type(transaction_type) -> TransactionType:
    try:
        return TransactionType(transaction_type)
    except ValueError:
        raise InvalidTransactionError(f"Unknown transaction type: {transaction_type!r}")


def _require_actor(actor) -> int:
    if actor is None:
        raise InvalidTransactionError("Stock transactions must record the acting user.")
    return actor


@dataclass(frozen=True)
class RecordedMovement:
    """Outcome of one committed unit.

    ``stock`` is the balance as this unit left it; ``transaction`` is None
    when the unit found nothing to book.
    """

    transaction: Optional[StockTransaction]
    stock: Stock


class TransactionRecorder:
    """Single entry point for every change to a stock balance."""

    def __init__(
        self,
        store: LedgerStore,
        audit_hook: Optional[AuditHook] = None,
        *,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ):
        self.store = store
        self.audit_hook = audit_hook
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

    def record_movement(
        self,
        product_id: int,
        transaction_type,
        quantity: int,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        *,
        actor: Optional[int],
        direction: Optional[Direction] = None,
        expected_on_hand: Optional[int] = None,
    ) -> RecordedMovement:
        transaction_type = _coerce_type(transaction_type)
        validate_quantity(quantity)
        direction = resolve_direction(transaction_type, direction)
        _require_actor(actor)

        def plan(stock: Stock):
            if expected_on_hand is not None and stock.quantity_on_hand != expected_on_hand:
                raise BalanceChangedError(product_id, expected_on_hand, stock.quantity_on_hand)
            return transaction_type, direction, quantity

        return self.apply_plan(product_id, transaction_type.value, plan, reference_number, notes, actor=actor)

    def record(
        self,
        product_id: int,
        transaction_type,
        quantity: int,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        *,
        actor: Optional[int],
        direction: Optional[Direction] = None,
        expected_on_hand: Optional[int] = None,
    ) -> StockTransaction:
        movement = self.record_movement(
            product_id,
            transaction_type,
            quantity,
            reference_number,
            notes,
            actor=actor,
            direction=direction,
            expected_on_hand=expected_on_hand,
        )
        return movement.transaction

    def apply_plan(
        self,
        product_id: int,
        label: str,
        plan: MovementPlan,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        *,
        actor: Optional[int],
    ) -> RecordedMovement:
        """Run ``plan`` against the locked balance and book what it returns.

        Transient store failures rerun the whole unit, plan included.
        """
        _require_actor(actor)
        attempt = 0
        while True:
            attempt += 1
            try:
                movement, fact = self._record_once(product_id, plan, reference_number, notes, actor)
                break
            except StoreUnavailableError as exc:
                if attempt >= self.retry_attempts:
                    logger.error(
                        "Giving up on %s for product_id=%s after %s attempts: %s",
                        label,
                        product_id,
                        attempt,
                        exc,
                    )
                    raise
                logger.warning(
                    "Transient store failure recording %s for product_id=%s (attempt %s/%s): %s",
                    label,
                    product_id,
                    attempt,
                    self.retry_attempts,
                    exc,
                )
                time.sleep(self.retry_backoff_seconds * attempt)

        transaction = movement.transaction
        if transaction is None:
            logger.info(
                "%s for product_id=%s is a no-op at on_hand=%s",
                label,
                product_id,
                movement.stock.quantity_on_hand,
            )
            return movement

        logger.info(
            "Recorded %s %s x%s for product_id=%s by user_id=%s (txn %s)",
            transaction.transaction_type,
            transaction.direction,
            transaction.quantity,
            product_id,
            actor,
            transaction.id,
        )
        if self.audit_hook is not None:
            self.audit_hook.emit(fact)
        return movement

    def _record_once(
        self,
        product_id: int,
        plan: MovementPlan,
        reference_number: Optional[str],
        notes: Optional[str],
        actor: int,
    ) -> tuple[RecordedMovement, Optional[AuditFact]]:
        with self.store.unit() as unit:
            stock = unit.read_balance(product_id)
            planned = plan(stock)
            if planned is None:
                # Nothing to write; commit just releases the lock and keeps ``stock`` loaded.
                unit.commit()
                return RecordedMovement(transaction=None, stock=stock), None

            transaction_type, direction, quantity = planned
            before = stock.snapshot()
            delta = signed_delta(direction, quantity)
            if delta < 0 and stock.quantity_on_hand + delta < stock.quantity_reserved:
                available = stock.quantity_on_hand - stock.quantity_reserved
                logger.warning(
                    "Rejected %s for product_id=%s: requested=%s available=%s",
                    transaction_type.value,
                    product_id,
                    quantity,
                    available,
                )
                raise InsufficientStockError(product_id, available=available, requested=quantity)

            unit.write_balance(stock, stock.quantity_on_hand + delta, stock.quantity_reserved, actor)
            transaction = StockTransaction(
                transaction_type=transaction_type.value,
                direction=direction.value,
                quantity=quantity,
                reference_number=reference_number or None,
                notes=notes or None,
                created_by=actor,
            )
            unit.append_transaction(stock, transaction)
            unit.commit()

        after = stock.snapshot()
        after.update(
            transaction_id=transaction.id,
            transaction_type=transaction.transaction_type,
            direction=transaction.direction,
            quantity=quantity,
            reference_number=transaction.reference_number,
        )
        fact = AuditFact(
            actor=actor,
            action=AUDIT_ACTIONS[transaction_type],
            entity_id=str(product_id),
            before=before,
            after=after,
        )
        return RecordedMovement(transaction=transaction, stock=stock), fact

    def stock_in(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.record(product_id, TransactionType.STOCK_IN, quantity, reference_number, notes, actor=actor)

    def stock_out(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.record(product_id, TransactionType.STOCK_OUT, quantity, reference_number, notes, actor=actor)

    def record_return(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.record(product_id, TransactionType.RETURN, quantity, reference_number, notes, actor=actor)

from enum import Enum

from stockroom.ledger.errors import InvalidTransactionError


class TransactionType(str, Enum):
    STOCK_IN = "Stock In"
    STOCK_OUT = "Stock Out"
    ADJUSTMENT = "Adjustment"
    RETURN = "Return"


class Direction(str, Enum):
    IN = "IN"
    OUT = "OUT"


# Adjustment has no fixed direction; the caller supplies it.
IMPLIED_DIRECTIONS: dict[TransactionType, Direction] = {
    TransactionType.STOCK_IN: Direction.IN,
    TransactionType.STOCK_OUT: Direction.OUT,
    TransactionType.RETURN: Direction.OUT,
}

AUDIT_ACTIONS: dict[TransactionType, str] = {
    TransactionType.STOCK_IN: "STOCK_IN",
    TransactionType.STOCK_OUT: "STOCK_OUT",
    TransactionType.RETURN: "STOCK_RETURN",
    TransactionType.ADJUSTMENT: "ADJUST_STOCK",
}


def _coerce_direction(direction) -> Direction:
    try:
        return Direction(direction)
    except ValueError:
        raise InvalidTransactionError(f"Unknown direction: {direction!r}")


def resolve_direction(transaction_type: TransactionType, direction: Direction | None) -> Direction:
    implied = IMPLIED_DIRECTIONS.get(transaction_type)
    if implied is None:
        if direction is None:
            raise InvalidTransactionError("Adjustment transactions require an explicit direction.")
        return _coerce_direction(direction)
    if direction is not None and _coerce_direction(direction) != implied:
        raise InvalidTransactionError(
            f"{transaction_type.value} transactions always move stock {implied.value}, got {Direction(direction).value}."
        )
    return implied


def signed_delta(direction: Direction, quantity: int) -> int:
    return quantity if Direction(direction) == Direction.IN else -quantity

class LedgerError(Exception):
    """Base class for every failure raised by the stock ledger."""

    code = "LEDGER_ERROR"
    retryable = False


class ProductNotFoundError(LedgerError, LookupError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found.")


class InvalidQuantityError(LedgerError, ValueError):
    code = "INVALID_QUANTITY"


class InvalidTransactionError(LedgerError, ValueError):
    code = "INVALID_TRANSACTION"


class InsufficientStockError(LedgerError, ValueError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} (requested {requested}, available {available})."
        )


class InvariantViolationError(LedgerError, RuntimeError):
    """A balance write would break on_hand >= reserved >= 0.

    Business checks run before every write, so reaching this means a logic
    fault, not a bad request.
    """

    code = "INTERNAL_INVARIANT_VIOLATION"


class BalanceChangedError(LedgerError):
    """The locked balance no longer matches the value a caller planned against."""

    code = "BALANCE_CHANGED"

    def __init__(self, product_id, expected: int, actual: int):
        self.product_id = product_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"On-hand for product {product_id} changed from {expected} to {actual}.")


class StoreUnavailableError(LedgerError):
    code = "STORE_UNAVAILABLE"
    retryable = True


class StoreTimeoutError(StoreUnavailableError):
    code = "STORE_TIMEOUT"


class InvalidQueryError(LedgerError, ValueError):
    code = "INVALID_QUERY"

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional
import logging
import uuid

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from stockroom.db import WRITE_LOCK_OPTION, Database
from stockroom.ledger.errors import (
    InvariantViolationError,
    ProductNotFoundError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from stockroom.models import Product, Stock, StockTransaction


logger = logging.getLogger(__name__)

_LOCK_TIMEOUT_MARKERS = ("database is locked", "database table is locked", "lock timeout", "lock_timeout")
_PG_LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_timeout(exc: DBAPIError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


@contextmanager
def translate_store_errors(context: str) -> Iterator[None]:
    """Map driver failures onto the ledger's error taxonomy."""
    try:
        yield
    except StaleDataError as exc:
        raise StoreUnavailableError(f"Concurrent update detected during {context}.") from exc
    except IntegrityError as exc:
        logger.error("Constraint violation during %s: %s", context, exc.orig)
        raise InvariantViolationError(f"Constraint violation during {context}: {exc.orig}") from exc
    except OperationalError as exc:
        if _is_lock_timeout(exc):
            raise StoreTimeoutError(f"Timed out acquiring the stock lock during {context}.") from exc
        raise StoreUnavailableError(f"Store unavailable during {context}: {exc.orig}") from exc
    except DBAPIError as exc:
        raise StoreUnavailableError(f"Store failure during {context}: {exc.orig}") from exc


class LedgerUnit:
    """One atomic unit of work against the stock tables.

    The unit holds the write lock from its first read until commit or abort,
    so a read-validate-write sequence inside it cannot interleave with
    another unit touching the same product.
    """

    def __init__(self, session: Session, *, dialect_name: str, lock_timeout_seconds: float):
        self.session = session
        self.dialect_name = dialect_name
        self.is_open = True
        with translate_store_errors("begin"):
            session.connection(execution_options={WRITE_LOCK_OPTION: True})
            if dialect_name == "postgresql":
                timeout_ms = int(lock_timeout_seconds * 1000)
                session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))

    def read_balance(self, product_id: int, *, active_only: bool = True) -> Stock:
        query = self.session.query(Stock).join(Product, Product.id == Stock.product_id).filter(Stock.product_id == product_id)
        if active_only:
            query = query.filter(Product.is_active.is_(True))
        with translate_store_errors("read_balance"):
            stock = query.with_for_update(of=Stock).first()
        if stock is None:
            raise ProductNotFoundError(product_id)
        logger.debug(
            "Locked balance: product_id=%s on_hand=%s reserved=%s version=%s",
            product_id,
            stock.quantity_on_hand,
            stock.quantity_reserved,
            stock.version,
        )
        return stock

    def write_balance(self, stock: Stock, new_on_hand: int, new_reserved: int, actor: Optional[int]) -> Stock:
        if new_on_hand < 0 or new_reserved < 0 or new_reserved > new_on_hand:
            logger.error(
                "Refusing balance write: product_id=%s on_hand=%s reserved=%s (was on_hand=%s reserved=%s)",
                stock.product_id,
                new_on_hand,
                new_reserved,
                stock.quantity_on_hand,
                stock.quantity_reserved,
            )
            raise InvariantViolationError(
                f"Balance for product {stock.product_id} would become on_hand={new_on_hand} reserved={new_reserved}."
            )
        stock.quantity_on_hand = new_on_hand
        stock.quantity_reserved = new_reserved
        stock.quantity_available = new_on_hand - new_reserved
        stock.last_updated = datetime.utcnow()
        stock.last_updated_by = actor
        return stock

    def append_transaction(self, stock: Stock, record: StockTransaction) -> str:
        if record.id is None:
            record.id = str(uuid.uuid4())
        record.product_id = stock.product_id
        # The row version before this unit's write numbers the entry.
        record.sequence_no = stock.version
        self.session.add(record)
        return record.id

    def commit(self) -> None:
        with translate_store_errors("commit"):
            self.session.commit()
        self.is_open = False

    def abort(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        try:
            self.session.rollback()
        except DBAPIError:
            logger.exception("Rollback failed; connection will be discarded")

    def close(self) -> None:
        self.session.close()


class LedgerStore:
    def __init__(self, database: Database, *, lock_timeout_seconds: float = 5.0):
        self.database = database
        self.lock_timeout_seconds = lock_timeout_seconds

    def begin_unit(self) -> LedgerUnit:
        session = self.database.session()
        try:
            return LedgerUnit(
                session,
                dialect_name=self.database.dialect_name,
                lock_timeout_seconds=self.lock_timeout_seconds,
            )
        except Exception:
            session.close()
            raise

    @contextmanager
    def unit(self) -> Iterator[LedgerUnit]:
        unit = self.begin_unit()
        try:
            yield unit
        finally:
            # Leaving without commit, for any reason, discards the unit.
            unit.abort()
            unit.close()

    @contextmanager
    def read_session(self) -> Iterator[Session]:
        session = self.database.session()
        try:
            with translate_store_errors("read"):
                yield session
        finally:
            session.close()

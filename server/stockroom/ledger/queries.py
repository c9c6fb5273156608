from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy.orm import Session

from stockroom.ledger.errors import InvalidQueryError, ProductNotFoundError
from stockroom.ledger.reconcile import ReconciliationReport, reconcile, reconcile_all
from stockroom.ledger.store import LedgerStore
from stockroom.models import Category, Product, Stock, StockTransaction, User


logger = logging.getLogger(__name__)

STATUS_LOW = "Low"
STATUS_OK = "OK"


@dataclass(frozen=True)
class StockSummaryRow:
    stock_id: Optional[int]
    product_id: int
    sku: str
    name: str
    category_name: Optional[str]
    unit_cost: Decimal
    selling_price: Decimal
    reorder_level: int
    quantity_on_hand: int
    quantity_reserved: int
    quantity_available: int
    last_updated: Optional[datetime]
    status: str


@dataclass(frozen=True)
class LowStockRow:
    product_id: int
    sku: str
    name: str
    category_name: Optional[str]
    reorder_level: int
    quantity_on_hand: int


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    product_id: int
    sku: Optional[str]
    product_name: Optional[str]
    transaction_type: str
    direction: str
    quantity: int
    signed_quantity: int
    reference_number: Optional[str]
    notes: Optional[str]
    created_by: Optional[int]
    created_by_name: Optional[str]
    created_at: datetime


def stock_status(quantity_on_hand: int, reorder_level: int) -> str:
    return STATUS_LOW if quantity_on_hand <= reorder_level else STATUS_OK


class BalanceQueryService:
    """Read-only views over committed balances and the transaction log."""

    def __init__(self, store: LedgerStore, *, max_page_size: int = 500):
        self.store = store
        self.max_page_size = max_page_size

    def _page(self, limit: int, offset: int) -> tuple[int, int]:
        if offset < 0:
            raise InvalidQueryError(f"Offset must be 0 or more, got {offset}.")
        return min(max(int(limit), 1), self.max_page_size), int(offset)

    def get_balance(self, product_id: int) -> Stock:
        with self.store.read_session() as db:
            stock = db.query(Stock).filter(Stock.product_id == product_id).first()
        if stock is None:
            raise ProductNotFoundError(product_id)
        return stock

    def get_summary(self) -> list[StockSummaryRow]:
        with self.store.read_session() as db:
            rows = (
                db.query(Product, Stock, Category.name)
                .outerjoin(Stock, Stock.product_id == Product.id)
                .outerjoin(Category, Category.id == Product.category_id)
                .filter(Product.is_active.is_(True))
                .order_by(Product.name.asc(), Product.id.asc())
                .all()
            )
        summary = []
        for product, stock, category_name in rows:
            on_hand = stock.quantity_on_hand if stock else 0
            summary.append(
                StockSummaryRow(
                    stock_id=stock.id if stock else None,
                    product_id=product.id,
                    sku=product.sku,
                    name=product.name,
                    category_name=category_name,
                    unit_cost=Decimal(product.unit_cost or 0),
                    selling_price=Decimal(product.selling_price or 0),
                    reorder_level=product.reorder_level,
                    quantity_on_hand=on_hand,
                    quantity_reserved=stock.quantity_reserved if stock else 0,
                    quantity_available=stock.quantity_available if stock else 0,
                    last_updated=stock.last_updated if stock else None,
                    status=stock_status(on_hand, product.reorder_level),
                )
            )
        return summary

    def get_low_stock(self) -> list[LowStockRow]:
        with self.store.read_session() as db:
            rows = (
                db.query(Product, Stock.quantity_on_hand, Category.name)
                .join(Stock, Stock.product_id == Product.id)
                .outerjoin(Category, Category.id == Product.category_id)
                .filter(Product.is_active.is_(True), Stock.quantity_on_hand <= Product.reorder_level)
                .order_by(Stock.quantity_on_hand.asc(), Product.name.asc())
                .all()
            )
        return [
            LowStockRow(
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                category_name=category_name,
                reorder_level=product.reorder_level,
                quantity_on_hand=on_hand,
            )
            for product, on_hand, category_name in rows
        ]

    def _history_query(self, db: Session):
        return (
            db.query(StockTransaction, Product.sku, Product.name, User.username)
            .outerjoin(Product, Product.id == StockTransaction.product_id)
            .outerjoin(User, User.id == StockTransaction.created_by)
        )

    @staticmethod
    def _to_entry(row) -> HistoryEntry:
        txn, sku, product_name, username = row
        return HistoryEntry(
            id=txn.id,
            product_id=txn.product_id,
            sku=sku,
            product_name=product_name,
            transaction_type=txn.transaction_type,
            direction=txn.direction,
            quantity=txn.quantity,
            signed_quantity=txn.signed_quantity,
            reference_number=txn.reference_number,
            notes=txn.notes,
            created_by=txn.created_by,
            created_by_name=username,
            created_at=txn.created_at,
        )

    def get_history(self, product_id: int, limit: int = 50, offset: int = 0) -> list[HistoryEntry]:
        limit, offset = self._page(limit, offset)
        with self.store.read_session() as db:
            if db.query(Stock.id).filter(Stock.product_id == product_id).first() is None:
                raise ProductNotFoundError(product_id)
            rows = (
                self._history_query(db)
                .filter(StockTransaction.product_id == product_id)
                .order_by(StockTransaction.created_at.desc(), StockTransaction.sequence_no.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )
            return [self._to_entry(row) for row in rows]

    def get_all_history(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[HistoryEntry]:
        limit, offset = self._page(limit, offset)
        with self.store.read_session() as db:
            query = self._history_query(db)
            if start_date is not None:
                query = query.filter(StockTransaction.created_at >= datetime.combine(start_date, time.min))
            if end_date is not None and end_date < date.max:
                query = query.filter(StockTransaction.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
            elif end_date is not None:
                query = query.filter(StockTransaction.created_at <= datetime.combine(date.max, time.max))
            rows = (
                query.order_by(
                    StockTransaction.created_at.desc(),
                    StockTransaction.product_id.asc(),
                    StockTransaction.sequence_no.desc(),
                )
                .limit(limit)
                .offset(offset)
                .all()
            )
            logger.debug(
                "History lookup: start=%s end=%s limit=%s offset=%s rows=%s", start_date, end_date, limit, offset, len(rows)
            )
            return [self._to_entry(row) for row in rows]

    def reconcile(self, product_id: int) -> ReconciliationReport:
        with self.store.read_session() as db:
            return reconcile(db, product_id)

    def reconcile_all(self) -> list[ReconciliationReport]:
        with self.store.read_session() as db:
            return reconcile_all(db)

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from stockroom.ledger.errors import ProductNotFoundError
from stockroom.models import Stock, StockTransaction


@dataclass(frozen=True)
class ReconciliationReport:
    product_id: int
    quantity_on_hand: int
    ledger_total: int
    transaction_count: int

    @property
    def difference(self) -> int:
        return self.quantity_on_hand - self.ledger_total

    @property
    def is_balanced(self) -> bool:
        return self.difference == 0


def _signed_quantity():
    return case((StockTransaction.direction == "IN", StockTransaction.quantity), else_=-StockTransaction.quantity)


def ledger_totals(db: Session, product_ids: Optional[list[int]] = None) -> dict[int, tuple[int, int]]:
    """Replay the log: product_id -> (signed sum, transaction count)."""
    query = db.query(
        StockTransaction.product_id,
        func.coalesce(func.sum(_signed_quantity()), 0),
        func.count(StockTransaction.id),
    )
    if product_ids is not None:
        query = query.filter(StockTransaction.product_id.in_(product_ids))
    rows = query.group_by(StockTransaction.product_id).all()
    return {product_id: (int(total or 0), int(count or 0)) for product_id, total, count in rows}


def reconcile(db: Session, product_id: int) -> ReconciliationReport:
    stock = db.query(Stock).filter(Stock.product_id == product_id).first()
    if stock is None:
        raise ProductNotFoundError(product_id)
    total, count = ledger_totals(db, [product_id]).get(product_id, (0, 0))
    return ReconciliationReport(
        product_id=product_id,
        quantity_on_hand=stock.quantity_on_hand,
        ledger_total=total,
        transaction_count=count,
    )


def reconcile_all(db: Session) -> list[ReconciliationReport]:
    totals = ledger_totals(db)
    reports = []
    for stock in db.query(Stock).order_by(Stock.product_id.asc()).all():
        total, count = totals.get(stock.product_id, (0, 0))
        reports.append(
            ReconciliationReport(
                product_id=stock.product_id,
                quantity_on_hand=stock.quantity_on_hand,
                ledger_total=total,
                transaction_count=count,
            )
        )
    return reports

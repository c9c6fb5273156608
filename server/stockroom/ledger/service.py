from datetime import date
from typing import Optional

from stockroom.config import Settings
from stockroom.ledger.adjustment import AdjustmentResolver
from stockroom.ledger.audit import AuditHook
from stockroom.ledger.queries import BalanceQueryService, HistoryEntry, LowStockRow, StockSummaryRow
from stockroom.ledger.reconcile import ReconciliationReport
from stockroom.ledger.recorder import RecordedMovement, TransactionRecorder
from stockroom.ledger.store import LedgerStore
from stockroom.models import Stock, StockTransaction


class StockLedger:
    """Operations the stock ledger exposes to request handlers."""

    def __init__(
        self,
        store: LedgerStore,
        audit_hook: Optional[AuditHook] = None,
        *,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        max_page_size: int = 500,
    ):
        self.store = store
        self.audit_hook = audit_hook
        self.recorder = TransactionRecorder(
            store,
            audit_hook,
            retry_attempts=retry_attempts,
            retry_backoff_seconds=retry_backoff_seconds,
        )
        self.adjustments = AdjustmentResolver(self.recorder)
        self.queries = BalanceQueryService(store, max_page_size=max_page_size)

    @classmethod
    def from_settings(cls, store: LedgerStore, settings: Settings, audit_hook: Optional[AuditHook] = None) -> "StockLedger":
        return cls(
            store,
            audit_hook,
            retry_attempts=settings.store_retry_attempts,
            retry_backoff_seconds=settings.store_retry_backoff_seconds,
            max_page_size=settings.max_page_size,
        )

    def record_movement(
        self, product_id: int, transaction_type, quantity: int, reference_number=None, notes=None, *, actor
    ) -> RecordedMovement:
        return self.recorder.record_movement(product_id, transaction_type, quantity, reference_number, notes, actor=actor)

    def record_stock_in(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.recorder.stock_in(product_id, quantity, reference_number, notes, actor=actor)

    def record_stock_out(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.recorder.stock_out(product_id, quantity, reference_number, notes, actor=actor)

    def record_return(self, product_id: int, quantity: int, reference_number=None, notes=None, *, actor) -> StockTransaction:
        return self.recorder.record_return(product_id, quantity, reference_number, notes, actor=actor)

    def adjust_absolute(self, product_id: int, new_quantity: int, notes=None, *, actor) -> Stock:
        return self.adjustments.set_absolute(product_id, new_quantity, notes, actor=actor)

    def get_balance(self, product_id: int) -> Stock:
        return self.queries.get_balance(product_id)

    def get_summary(self) -> list[StockSummaryRow]:
        return self.queries.get_summary()

    def get_low_stock(self) -> list[LowStockRow]:
        return self.queries.get_low_stock()

    def get_history(self, product_id: int, limit: int = 50, offset: int = 0) -> list[HistoryEntry]:
        return self.queries.get_history(product_id, limit, offset)

    def get_all_history(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[HistoryEntry]:
        return self.queries.get_all_history(start_date, end_date, limit, offset)

    def reconcile(self, product_id: int) -> ReconciliationReport:
        return self.queries.reconcile(product_id)

    def reconcile_all(self) -> list[ReconciliationReport]:
        return self.queries.reconcile_all()

import pytest

from conftest import add_product
from stockroom.ledger.deltas import Direction, TransactionType
from stockroom.ledger.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidTransactionError,
    ProductNotFoundError,
)
from stockroom.models import Stock, StockTransaction


def _transactions(database, product_id):
    with database.session() as db:
        return db.query(StockTransaction).filter(StockTransaction.product_id == product_id).all()


def test_stock_in_on_fresh_product_sets_balance_and_appends_one_row(ledger, database, product_id, actor):
    transaction = ledger.record_stock_in(product_id, 100, actor=actor)

    balance = ledger.get_balance(product_id)
    assert balance.quantity_on_hand == 100
    assert balance.quantity_available == 100
    assert balance.last_updated_by == actor

    rows = _transactions(database, product_id)
    assert len(rows) == 1
    assert rows[0].id == transaction.id
    assert rows[0].transaction_type == "Stock In"
    assert rows[0].direction == "IN"
    assert rows[0].quantity == 100
    assert rows[0].created_by == actor


def test_stock_out_beyond_available_is_rejected_and_balance_unchanged(ledger, database, product_id, actor):
    ledger.record_stock_in(product_id, 100, actor=actor)
    ledger.record_stock_out(product_id, 30, actor=actor)

    balance = ledger.get_balance(product_id)
    assert balance.quantity_on_hand == 70
    assert balance.quantity_available == 70

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record_stock_out(product_id, 80, actor=actor)

    assert exc_info.value.available == 70
    assert exc_info.value.requested == 80
    assert ledger.get_balance(product_id).quantity_on_hand == 70
    assert len(_transactions(database, product_id)) == 2


def test_stock_out_respects_reserved_quantity(ledger, database, product_id, actor):
    ledger.record_stock_in(product_id, 20, actor=actor)
    with database.session() as db:
        stock = db.query(Stock).filter(Stock.product_id == product_id).one()
        stock.quantity_reserved = 15
        stock.quantity_available = 5
        db.commit()

    with pytest.raises(InsufficientStockError) as exc_info:
        ledger.record_stock_out(product_id, 6, actor=actor)
    assert exc_info.value.available == 5

    ledger.record_stock_out(product_id, 5, actor=actor)
    balance = ledger.get_balance(product_id)
    assert balance.quantity_on_hand == 15
    assert balance.quantity_reserved == 15
    assert balance.quantity_available == 0


def test_return_decreases_on_hand(ledger, product_id, actor):
    ledger.record_stock_in(product_id, 10, actor=actor)

    transaction = ledger.record_return(product_id, 4, "RMA-7", "Damaged on arrival", actor=actor)

    assert transaction.transaction_type == "Return"
    assert transaction.direction == "OUT"
    assert transaction.reference_number == "RMA-7"
    assert ledger.get_balance(product_id).quantity_on_hand == 6


def test_return_cannot_exceed_available(ledger, product_id, actor):
    ledger.record_stock_in(product_id, 3, actor=actor)

    with pytest.raises(InsufficientStockError):
        ledger.record_return(product_id, 4, actor=actor)


@pytest.mark.parametrize("quantity", [0, -5, 2.5, "3", True, None])
def test_invalid_quantities_are_rejected(ledger, database, product_id, actor, quantity):
    with pytest.raises(InvalidQuantityError):
        ledger.record_stock_in(product_id, quantity, actor=actor)
    assert _transactions(database, product_id) == []


def test_unknown_product_is_rejected(ledger, actor):
    with pytest.raises(ProductNotFoundError):
        ledger.record_stock_in(9999, 1, actor=actor)


def test_inactive_product_is_rejected(ledger, database, actor):
    product_id = add_product(database, actor, sku="OLD-1", name="Retired", is_active=False)

    with pytest.raises(ProductNotFoundError):
        ledger.record_stock_in(product_id, 1, actor=actor)


def test_adjustment_requires_explicit_direction(ledger, product_id, actor):
    with pytest.raises(InvalidTransactionError):
        ledger.recorder.record(product_id, TransactionType.ADJUSTMENT, 5, actor=actor)


def test_fixed_direction_types_reject_contradicting_direction(ledger, product_id, actor):
    with pytest.raises(InvalidTransactionError):
        ledger.recorder.record(product_id, "Stock Out", 5, actor=actor, direction=Direction.IN)


def test_unknown_transaction_type_is_rejected(ledger, product_id, actor):
    with pytest.raises(InvalidTransactionError):
        ledger.recorder.record(product_id, "Transfer", 5, actor=actor)


def test_actor_is_mandatory(ledger, product_id):
    with pytest.raises(InvalidTransactionError):
        ledger.record_stock_in(product_id, 5, actor=None)


def test_committed_mutation_emits_audit_fact(ledger, sink, product_id, actor):
    ledger.record_stock_in(product_id, 12, "PO-1", actor=actor)
    ledger.record_stock_out(product_id, 2, actor=actor)

    assert [fact.action for fact in sink.facts] == ["STOCK_IN", "STOCK_OUT"]
    first = sink.facts[0]
    assert first.actor == actor
    assert first.entity_type == "Stock"
    assert first.entity_id == str(product_id)
    assert first.before["quantity_on_hand"] == 0
    assert first.after["quantity_on_hand"] == 12
    assert first.after["reference_number"] == "PO-1"


def test_rejected_mutation_emits_nothing(ledger, sink, product_id, actor):
    with pytest.raises(InsufficientStockError):
        ledger.record_stock_out(product_id, 1, actor=actor)

    assert sink.facts == []


def test_transactions_are_numbered_per_product(ledger, database, actor):
    first = add_product(database, actor, sku="A-1", name="Alpha")
    second = add_product(database, actor, sku="B-1", name="Beta")
    ledger.record_stock_in(first, 5, actor=actor)
    ledger.record_stock_in(second, 5, actor=actor)
    ledger.record_stock_out(first, 1, actor=actor)

    numbers = sorted(row.sequence_no for row in _transactions(database, first))
    assert numbers == [1, 2]
    assert [row.sequence_no for row in _transactions(database, second)] == [1]


def test_movement_reports_the_balance_it_committed(ledger, product_id, actor):
    first = ledger.record_movement(product_id, "Stock In", 8, actor=actor)
    second = ledger.record_movement(product_id, "Stock Out", 3, actor=actor)

    assert first.stock.quantity_on_hand == 8
    assert first.transaction.quantity == 8
    assert second.stock.quantity_on_hand == 5
    assert second.stock.quantity_available == 5

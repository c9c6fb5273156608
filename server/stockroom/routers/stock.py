from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from stockroom.auth import ROLE_ADMIN, ROLE_STOREKEEPER, get_current_user, require_role
from stockroom.ledger import schemas
from stockroom.ledger.deltas import TransactionType
from stockroom.ledger.errors import (
    InsufficientStockError,
    InvalidQueryError,
    InvalidQuantityError,
    InvalidTransactionError,
    InvariantViolationError,
    LedgerError,
    ProductNotFoundError,
    StoreUnavailableError,
)
from stockroom.ledger.recorder import RecordedMovement
from stockroom.ledger.service import StockLedger
from stockroom.models import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stock", tags=["stock"], dependencies=[Depends(get_current_user)])

RETRY_AFTER_SECONDS = "1"


def get_ledger(request: Request) -> StockLedger:
    return request.app.state.ledger


def _to_http_error(exc: LedgerError) -> HTTPException:
    if isinstance(exc, ProductNotFoundError):
        return HTTPException(status_code=404, detail={"code": exc.code, "message": "Product not found."})
    if isinstance(exc, InsufficientStockError):
        return HTTPException(
            status_code=400,
            detail={
                "code": exc.code,
                "message": "Insufficient stock",
                "available": exc.available,
                "requested": exc.requested,
            },
        )
    if isinstance(exc, (InvalidQuantityError, InvalidTransactionError, InvalidQueryError)):
        return HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)})
    if isinstance(exc, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": exc.code, "message": "Stock store is busy, retry the request."},
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    if isinstance(exc, InvariantViolationError):
        logger.error("Stock invariant violated: %s", exc, exc_info=exc)
    else:
        logger.error("Unhandled ledger error: %s", exc, exc_info=exc)
    return HTTPException(status_code=500, detail={"code": exc.code, "message": "Internal stock ledger fault."})


def _movement_response(movement: RecordedMovement, message: str) -> schemas.StockMovementResponse:
    return schemas.StockMovementResponse(
        message=message,
        transaction=schemas.StockTransactionResponse.model_validate(movement.transaction),
        stock=schemas.StockResponse.model_validate(movement.stock),
    )


@router.get("/summary", response_model=List[schemas.StockSummaryResponse])
def get_inventory_summary(ledger: StockLedger = Depends(get_ledger)):
    return [schemas.StockSummaryResponse.model_validate(row) for row in ledger.get_summary()]


@router.get("/low-stock", response_model=List[schemas.LowStockResponse])
def get_low_stock(ledger: StockLedger = Depends(get_ledger)):
    return [schemas.LowStockResponse.model_validate(row) for row in ledger.get_low_stock()]


@router.get("/transactions/all", response_model=List[schemas.TransactionHistoryResponse])
def get_all_transactions(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0, ge=0),
    ledger: StockLedger = Depends(get_ledger),
):
    try:
        rows = ledger.get_all_history(start_date, end_date, limit, offset)
    except LedgerError as exc:
        raise _to_http_error(exc)
    return [schemas.TransactionHistoryResponse.model_validate(row) for row in rows]


@router.get("/product/{product_id}", response_model=schemas.StockResponse)
def get_product_stock(product_id: int, ledger: StockLedger = Depends(get_ledger)):
    try:
        return schemas.StockResponse.model_validate(ledger.get_balance(product_id))
    except LedgerError as exc:
        raise _to_http_error(exc)


@router.get("/product/{product_id}/history", response_model=List[schemas.TransactionHistoryResponse])
def get_transaction_history(
    product_id: int,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    ledger: StockLedger = Depends(get_ledger),
):
    try:
        rows = ledger.get_history(product_id, limit, offset)
    except LedgerError as exc:
        raise _to_http_error(exc)
    return [schemas.TransactionHistoryResponse.model_validate(row) for row in rows]


@router.get("/product/{product_id}/reconcile", response_model=schemas.ReconciliationResponse)
def reconcile_product(product_id: int, ledger: StockLedger = Depends(get_ledger)):
    try:
        return schemas.ReconciliationResponse.model_validate(ledger.reconcile(product_id))
    except LedgerError as exc:
        raise _to_http_error(exc)


@router.post("/in", response_model=schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_in(
    payload: schemas.StockMovementCreate,
    ledger: StockLedger = Depends(get_ledger),
    current_user: User = Depends(require_role(ROLE_ADMIN, ROLE_STOREKEEPER)),
):
    try:
        movement = ledger.record_movement(
            payload.product_id,
            TransactionType.STOCK_IN,
            payload.quantity,
            payload.reference_number,
            payload.notes,
            actor=current_user.id,
        )
    except LedgerError as exc:
        raise _to_http_error(exc)
    return _movement_response(movement, f"Added {payload.quantity} units")


@router.post("/out", response_model=schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_out(
    payload: schemas.StockMovementCreate,
    ledger: StockLedger = Depends(get_ledger),
    current_user: User = Depends(require_role(ROLE_ADMIN, ROLE_STOREKEEPER)),
):
    try:
        movement = ledger.record_movement(
            payload.product_id,
            TransactionType.STOCK_OUT,
            payload.quantity,
            payload.reference_number,
            payload.notes,
            actor=current_user.id,
        )
    except LedgerError as exc:
        raise _to_http_error(exc)
    return _movement_response(movement, f"Removed {payload.quantity} units")


@router.post("/return", response_model=schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_return(
    payload: schemas.StockMovementCreate,
    ledger: StockLedger = Depends(get_ledger),
    current_user: User = Depends(require_role(ROLE_ADMIN, ROLE_STOREKEEPER)),
):
    try:
        movement = ledger.record_movement(
            payload.product_id,
            TransactionType.RETURN,
            payload.quantity,
            payload.reference_number,
            payload.notes,
            actor=current_user.id,
        )
    except LedgerError as exc:
        raise _to_http_error(exc)
    return _movement_response(movement, f"Returned {payload.quantity} units to supplier")


@router.post("/adjust", response_model=schemas.StockAdjustmentResponse)
def adjust_stock(
    payload: schemas.StockAdjustmentCreate,
    ledger: StockLedger = Depends(get_ledger),
    current_user: User = Depends(require_role(ROLE_ADMIN)),
):
    try:
        stock = ledger.adjust_absolute(payload.product_id, payload.new_quantity, payload.notes, actor=current_user.id)
    except LedgerError as exc:
        raise _to_http_error(exc)
    return schemas.StockAdjustmentResponse(
        message=f"Stock adjusted to {payload.new_quantity}",
        stock=schemas.StockResponse.model_validate(stock),
    )

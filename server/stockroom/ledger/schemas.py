from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class StockMovementCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1, description="Units moved; direction comes from the endpoint.")
    reference_number: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class StockAdjustmentCreate(BaseModel):
    product_id: int
    new_quantity: int = Field(..., ge=0, description="Absolute on-hand quantity after the adjustment.")
    notes: Optional[str] = None


class StockResponse(BaseModel):
    id: int
    product_id: int
    quantity_on_hand: int
    quantity_reserved: int
    quantity_available: int
    last_updated: datetime
    last_updated_by: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class StockTransactionResponse(BaseModel):
    id: str
    product_id: int
    transaction_type: Literal["Stock In", "Stock Out", "Adjustment", "Return"]
    direction: Literal["IN", "OUT"]
    quantity: int
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMovementResponse(BaseModel):
    success: bool = True
    message: str
    transaction: StockTransactionResponse
    stock: StockResponse


class StockAdjustmentResponse(BaseModel):
    success: bool = True
    message: str
    stock: StockResponse


class StockSummaryResponse(BaseModel):
    stock_id: Optional[int] = None
    product_id: int
    sku: str
    name: str
    category_name: Optional[str] = None
    unit_cost: DecimalValue
    selling_price: DecimalValue
    reorder_level: int
    quantity_on_hand: int
    quantity_reserved: int
    quantity_available: int
    last_updated: Optional[datetime] = None
    status: Literal["Low", "OK"]

    model_config = ConfigDict(from_attributes=True)


class LowStockResponse(BaseModel):
    product_id: int
    sku: str
    name: str
    category_name: Optional[str] = None
    reorder_level: int
    quantity_on_hand: int

    model_config = ConfigDict(from_attributes=True)


class TransactionHistoryResponse(BaseModel):
    id: str
    product_id: int
    sku: Optional[str] = None
    product_name: Optional[str] = None
    transaction_type: str
    direction: str
    quantity: int
    signed_quantity: int
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReconciliationResponse(BaseModel):
    product_id: int
    quantity_on_hand: int
    ledger_total: int
    transaction_count: int
    difference: int
    is_balanced: bool

    model_config = ConfigDict(from_attributes=True)

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)


class ProductCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    unit_cost: DecimalValue = Field(default=Decimal("0"), ge=0)
    selling_price: DecimalValue = Field(default=Decimal("0"), ge=0)
    reorder_level: int = Field(default=10, ge=0)
    reorder_quantity: int = Field(default=50, ge=0)
    unit_of_measure: str = "pieces"


class ProductResponse(BaseModel):
    id: int
    sku: str
    name: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    supplier_id: Optional[int] = None
    unit_cost: DecimalValue
    selling_price: DecimalValue
    reorder_level: int
    reorder_quantity: int
    unit_of_measure: str
    is_active: bool
    quantity_on_hand: int = 0
    quantity_available: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

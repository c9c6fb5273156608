from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockroom.auth import ROLE_ADMIN, ROLE_STOREKEEPER, get_current_user, require_role
from stockroom.catalog import schemas
from stockroom.catalog.service import create_product, deactivate_product, get_product
from stockroom.db import get_db
from stockroom.ledger.errors import ProductNotFoundError
from stockroom.models import Product, User


router = APIRouter(prefix="/api/products", tags=["products"], dependencies=[Depends(get_current_user)])


def _to_response(product: Product) -> schemas.ProductResponse:
    stock = product.stock
    return schemas.ProductResponse(
        id=product.id,
        sku=product.sku,
        name=product.name,
        description=product.description,
        category_id=product.category_id,
        supplier_id=product.supplier_id,
        unit_cost=product.unit_cost,
        selling_price=product.selling_price,
        reorder_level=product.reorder_level,
        reorder_quantity=product.reorder_quantity,
        unit_of_measure=product.unit_of_measure,
        is_active=product.is_active,
        quantity_on_hand=stock.quantity_on_hand if stock else 0,
        quantity_available=stock.quantity_available if stock else 0,
        created_at=product.created_at,
    )


@router.post("", response_model=schemas.ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product_endpoint(
    payload: schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(ROLE_ADMIN, ROLE_STOREKEEPER)),
):
    try:
        product = create_product(db, payload.model_dump(), created_by=current_user.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A product with this SKU already exists.")
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    db.refresh(product)
    return _to_response(product)


@router.get("/{product_id}", response_model=schemas.ProductResponse)
def get_product_endpoint(product_id: int, db: Session = Depends(get_db)):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found.")
    return _to_response(product)


@router.delete("/{product_id}", response_model=schemas.ProductResponse)
def deactivate_product_endpoint(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(ROLE_ADMIN)),
):
    try:
        product = deactivate_product(db, product_id)
    except ProductNotFoundError:
        raise HTTPException(status_code=404, detail="Product not found.")
    db.commit()
    db.refresh(product)
    return _to_response(product)

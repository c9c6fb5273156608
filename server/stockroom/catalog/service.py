from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from stockroom.ledger.errors import ProductNotFoundError
from stockroom.models import Category, Product, Stock, Supplier


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.query(Product).filter(Product.id == product_id).first()


def get_active_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id, Product.is_active.is_(True)).first()
    if not product:
        raise ProductNotFoundError(product_id)
    return product


def create_product(db: Session, payload: dict, created_by: Optional[int] = None) -> Product:
    """Create a product together with its zero-balance stock row.

    Both rows go out in the same flush; callers commit or roll back the pair.
    """
    category_id = payload.get("category_id")
    if category_id is not None and not db.query(Category.id).filter(Category.id == category_id).first():
        raise ValueError("Category not found.")
    supplier_id = payload.get("supplier_id")
    if supplier_id is not None and not db.query(Supplier.id).filter(Supplier.id == supplier_id).first():
        raise ValueError("Supplier not found.")

    product = Product(**payload, created_by=created_by)
    product.stock = Stock(
        quantity_on_hand=0,
        quantity_reserved=0,
        quantity_available=0,
        last_updated=datetime.utcnow(),
        last_updated_by=created_by,
    )
    db.add(product)
    db.flush()
    return product


def deactivate_product(db: Session, product_id: int) -> Product:
    # The stock row and its history stay for reporting.
    product = get_active_product(db, product_id)
    product.is_active = False
    product.updated_at = datetime.utcnow()
    db.flush()
    return product

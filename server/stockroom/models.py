from datetime import datetime
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base


USER_ROLES = ("Admin", "Storekeeper", "Viewer")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=True)
    role = Column(Enum(*USER_ROLES, name="user_role"), nullable=False, default="Viewer")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    products = relationship("Product", back_populates="category")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    contact_person = Column(String(200), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    sku = Column(String(100), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=True)
    unit_cost = Column(Numeric(14, 2), nullable=False, default=0)
    selling_price = Column(Numeric(14, 2), nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=10)
    reorder_quantity = Column(Integer, nullable=False, default=50)
    unit_of_measure = Column(String(50), nullable=False, default="pieces")
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    category = relationship("Category", back_populates="products")
    supplier = relationship("Supplier")
    stock = relationship("Stock", back_populates="product", uselist=False)


class Stock(Base):
    __tablename__ = "stock"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), unique=True, nullable=False)
    quantity_on_hand = Column(Integer, nullable=False, default=0)
    quantity_reserved = Column(Integer, nullable=False, default=0)
    quantity_available = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    product = relationship("Product", back_populates="stock")

    __table_args__ = (
        CheckConstraint("quantity_reserved >= 0", name="ck_stock_reserved_non_negative"),
        CheckConstraint("quantity_on_hand >= quantity_reserved", name="ck_stock_on_hand_covers_reserved"),
        CheckConstraint(
            "quantity_available = quantity_on_hand - quantity_reserved",
            name="ck_stock_available_derived",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    def snapshot(self) -> dict:
        return {
            "quantity_on_hand": self.quantity_on_hand,
            "quantity_reserved": self.quantity_reserved,
            "quantity_available": self.quantity_available,
        }


TRANSACTION_TYPES = ("Stock In", "Stock Out", "Adjustment", "Return")
DIRECTIONS = ("IN", "OUT")


class StockTransaction(Base):
    __tablename__ = "stock_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    transaction_type = Column(Enum(*TRANSACTION_TYPES, name="stock_transaction_type"), nullable=False)
    direction = Column(Enum(*DIRECTIONS, name="stock_transaction_direction"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    sequence_no = Column(Integer, nullable=False)

    product = relationship("Product")
    user = relationship("User")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_transaction_quantity_positive"),
        UniqueConstraint("product_id", "sequence_no", name="uq_stock_transaction_product_sequence"),
    )

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == "IN" else -self.quantity


class AuditEvent(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(64), nullable=False)
    old_values = Column(Text, nullable=True)
    new_values = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

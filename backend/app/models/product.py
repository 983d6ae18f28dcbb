"""
Product database model.

Only the fields the inventory ledger needs: identity, display name, price
and the stock counter it decrements.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.product_enums import StockStatus


class Product(Base):
    """
    Product model.

    ``stock_quantity`` is the primary shared mutable resource of the engine.
    It is only ever changed by a conditional decrement, and the check
    constraint keeps it from going negative even if a caller bypasses that.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), unique=True, nullable=True, index=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)

    # Inventory
    stock_quantity = Column(Integer, nullable=False, default=0)
    stock_status = Column(Enum(StockStatus), default=StockStatus.IN_STOCK, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"

from sqlalchemy import Column, String, Text, Numeric, Integer, DateTime, Index
from core.database import BaseModel, CHAR_LENGTH
from core.exceptions import ValidationException
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional


class Product(BaseModel):
    __tablename__ = "products"
    __table_args__ = (
        Index('idx_products_deleted_at', 'deleted_at'),
        {'extend_existing': True}
    )

    name = Column(String(CHAR_LENGTH), nullable=False, index=True)
    description = Column(Text, nullable=True)
    sku = Column(String(100), unique=True, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="DOP", nullable=False)
    category_id = Column(String(CHAR_LENGTH), nullable=True, index=True)

    # Mirror of the inventory service quantity, written only by inventory.adjusted
    stock_quantity = Column(Integer, default=0, nullable=False)
    # Inventory version last applied to the mirror
    stock_version = Column(Integer, nullable=True)

    created_by = Column(String(CHAR_LENGTH), nullable=False, default="system")
    updated_by = Column(String(CHAR_LENGTH), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(CHAR_LENGTH), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def update_price(self, new_price: Decimal, currency: Optional[str], updated_by: str) -> None:
        if new_price is None or Decimal(str(new_price)) <= 0:
            raise ValidationException(
                message="Price must be greater than zero",
                errors={"price": str(new_price)}
            )
        self.price = Decimal(str(new_price))
        if currency:
            self.currency = currency
        self.updated_by = updated_by

    def update_stock(self, quantity: int, version: Optional[int] = None) -> bool:
        """
        Overwrite the stock mirror. Returns False (and changes nothing) when
        the given inventory version is not newer than the one already applied.
        """
        if version is not None and self.stock_version is not None and version <= self.stock_version:
            return False
        self.stock_quantity = quantity
        if version is not None:
            self.stock_version = version
        return True

    def soft_delete(self, deleted_by: str = "system") -> None:
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by = deleted_by
        self.updated_by = deleted_by

    def to_dict(self) -> dict:
        """Convert product to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "price": float(self.price) if self.price is not None else None,
            "currency": self.currency,
            "category_id": self.category_id,
            "stock_quantity": self.stock_quantity,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

"""
Inventory aggregate of the inventory service
Includes: Inventory, InventoryMovement
"""
from sqlalchemy import Column, String, Integer, ForeignKey, Text, DateTime, Index
from core.database import BaseModel, CHAR_LENGTH, GUID
from core.exceptions import InsufficientStockException
from datetime import datetime, timezone
from enum import Enum


class MovementType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    RETURN = "RETURN"
    DAMAGE = "DAMAGE"
    ADJUSTMENT = "ADJUSTMENT"


INCREASING_MOVEMENTS = (MovementType.IN, MovementType.RETURN)
DECREASING_MOVEMENTS = (MovementType.OUT, MovementType.DAMAGE)


class Inventory(BaseModel):
    """On-hand quantity of one product"""
    __tablename__ = "inventory"
    __table_args__ = (
        Index('idx_inventory_deleted_at', 'deleted_at'),
        {'extend_existing': True}
    )

    # Kept as a plain string; product ids arrive from the products service
    product_id = Column(String(CHAR_LENGTH), nullable=False, unique=True, index=True)
    quantity = Column(Integer, default=0, nullable=False)

    # Incremented on every adjustment, carried on inventory.adjusted
    version = Column(Integer, default=1, nullable=False)

    created_by = Column(String(CHAR_LENGTH), nullable=False, default="system")
    updated_by = Column(String(CHAR_LENGTH), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String(CHAR_LENGTH), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def adjust_quantity(self, amount: int, movement_type: MovementType) -> None:
        """
        Apply a movement to the on-hand quantity.
        Raises InsufficientStockException before mutating anything.
        """
        current = self.quantity or 0
        if movement_type in INCREASING_MOVEMENTS:
            new_quantity = current + amount
        elif movement_type in DECREASING_MOVEMENTS:
            if amount > current:
                raise InsufficientStockException(self.product_id, amount, current)
            new_quantity = current - amount
        else:
            new_quantity = current

        self.quantity = max(new_quantity, 0)
        self.version = (self.version or 1) + 1

    def soft_delete(self, deleted_by: str = "system") -> None:
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by = deleted_by

    def to_dict(self):
        return {
            "id": str(self.id),
            "product_id": self.product_id,
            "quantity": self.quantity,
            "version": self.version,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class InventoryMovement(BaseModel):
    """Immutable audit record of one quantity change"""
    __tablename__ = "inventory_movements"
    __table_args__ = (
        Index('idx_inventory_movements_inventory_created', 'inventory_id', 'created_at'),
        {'extend_existing': True}
    )

    inventory_id = Column(GUID(), ForeignKey("inventory.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    reference = Column(String(CHAR_LENGTH), nullable=True)
    created_by = Column(String(CHAR_LENGTH), nullable=False)

    def to_dict(self):
        return {
            "id": str(self.id),
            "inventory_id": str(self.inventory_id),
            "type": self.type,
            "quantity": self.quantity,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "reference": self.reference,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

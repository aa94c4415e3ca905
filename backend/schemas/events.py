"""
Domain events published by the two services. Serialized with camelCase keys.
"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
from datetime import datetime, timezone


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: datetime = Field(default_factory=_utc_now)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# --- Inventory service ---
class InventoryAdjustedEvent(DomainEvent):
    inventory_id: str
    product_id: str
    old_quantity: int
    new_quantity: int
    movement_type: str
    created_by: str
    version: Optional[int] = None


# --- Products service ---
class ProductCreatedEvent(DomainEvent):
    product_id: str
    name: str
    sku: str
    category_id: Optional[str] = None
    price: float
    currency: str


class ProductUpdatedEvent(DomainEvent):
    product_id: str
    changes: Dict[str, Any] = Field(default_factory=dict)


class ProductDeletedEvent(DomainEvent):
    product_id: str
    sku: str
    deleted_by: str


class PriceChangedEvent(DomainEvent):
    product_id: str
    old_price: float
    new_price: float
    currency: str
    created_by: str

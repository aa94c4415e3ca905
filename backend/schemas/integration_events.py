"""
Shapes of the events each service consumes from the other.
Unknown fields are ignored so producers can add fields without breaking consumers.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional


class IntegrationEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    timestamp: Optional[Any] = None


# --- Consumed by the inventory service ---
class ProductCreatedIntegrationEvent(IntegrationEvent):
    product_id: str = Field(alias="productId", min_length=1)
    name: Optional[str] = None
    sku: Optional[str] = None


class ProductUpdatedIntegrationEvent(IntegrationEvent):
    product_id: str = Field(alias="productId", min_length=1)
    changes: Dict[str, Any] = Field(default_factory=dict)


class ProductDeletedIntegrationEvent(IntegrationEvent):
    product_id: str = Field(alias="productId", min_length=1)
    sku: Optional[str] = None
    deleted_by: Optional[str] = Field(default=None, alias="deletedBy")


# --- Consumed by the products service ---
class InventoryAdjustedIntegrationEvent(IntegrationEvent):
    inventory_id: Optional[str] = Field(default=None, alias="inventoryId")
    product_id: str = Field(alias="productId", min_length=1)
    old_quantity: Optional[int] = Field(default=None, alias="oldQuantity")
    new_quantity: int = Field(alias="newQuantity", ge=0)
    movement_type: Optional[str] = Field(default=None, alias="movementType")
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    version: Optional[int] = None

from enum import Enum


class KafkaTopic(str, Enum):
    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    PRODUCT_DELETED = "product.deleted"
    PRODUCT_PRICE_CHANGED = "product.price-changed"
    INVENTORY_ADJUSTED = "inventory.adjusted"

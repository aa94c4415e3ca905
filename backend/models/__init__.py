# Models package - Consolidated imports only
from .processed_event import ProcessedEvent, ProcessingResult
from .inventory import Inventory, InventoryMovement, MovementType
from .product import Product

__all__ = [
    # Event ledger (both services)
    "ProcessedEvent",
    "ProcessingResult",

    # Inventory service
    "Inventory",
    "InventoryMovement",
    "MovementType",

    # Products service
    "Product",
]

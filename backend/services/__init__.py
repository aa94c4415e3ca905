# Services package - Consolidated imports only

# Event ledger
from .processed_events import ProcessedEventStore
from .idempotency import IdempotencyService, ProcessingOutcome

# Publishers and use cases
from .event_publishers import InventoryEventPublisher, ProductEventPublisher
from .inventory import InventoryService
from .products import ProductService

# Consumers
from .product_event_consumer import ProductEventConsumer
from .inventory_event_consumer import InventoryEventConsumer

__all__ = [
    "ProcessedEventStore",
    "IdempotencyService",
    "ProcessingOutcome",
    "InventoryEventPublisher",
    "ProductEventPublisher",
    "InventoryService",
    "ProductService",
    "ProductEventConsumer",
    "InventoryEventConsumer",
]

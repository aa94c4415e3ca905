import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from core.config import settings
from core.database import db_manager, initialize_db
from core.events.channel import MessageChannel
from core.events.registry import HandlerRegistryBuilder
from core.exceptions import APIException, api_exception_handler, general_exception_handler
from core.lifecycle import ServiceComponents, health_status, start_components, stop_components
from core.logging_config import setup_logging
from jobs.event_cleanup_tasks import EventCleanupTaskManager
from models.processed_event import ProcessedEvent
from models.product import Product
from services.event_publishers import ProductEventPublisher
from services.idempotency import IdempotencyService
from services.inventory_event_consumer import InventoryEventConsumer

logger = logging.getLogger(__name__)

SERVICE_NAME = "products-service"

OWNED_TABLES = [ProcessedEvent.__table__, Product.__table__]


def build_components(session_factory, **channel_options) -> ServiceComponents:
    """Wire the products service: the inventory adjustment handler is subscribed before the channel exists."""
    channel_options.setdefault("client_id", settings.KAFKA_CLIENT_ID or SERVICE_NAME)
    channel_options.setdefault("group_id", settings.KAFKA_GROUP_ID or f"{SERVICE_NAME}-consumer-group")
    idempotency = IdempotencyService(session_factory)
    consumer = InventoryEventConsumer(idempotency)
    registry = consumer.register(HandlerRegistryBuilder()).build()
    channel = MessageChannel(registry, **channel_options)
    return ServiceComponents(
        service_name=SERVICE_NAME,
        idempotency=idempotency,
        channel=channel,
        cleanup=EventCleanupTaskManager(idempotency),
        publisher=ProductEventPublisher(channel)
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, SERVICE_NAME)

    problems = settings.validate()
    for problem in problems:
        logger.error(f"Configuration problem: {problem}")
    if problems and not settings.is_local:
        raise RuntimeError("Invalid configuration. Please check your .env file.")

    initialize_db(settings.SQLALCHEMY_DATABASE_URI, settings.is_local)
    if settings.is_local:
        await db_manager.create_tables(OWNED_TABLES)

    components = build_components(db_manager.session_factory)
    app.state.components = components
    # Staggered so both services do not join their groups at the same moment on cold start
    await start_components(components, consumer_start_delay=settings.KAFKA_CONSUMER_START_DELAY_SECONDS)
    yield
    await stop_components(components)
    await db_manager.dispose()


app = FastAPI(
    title="Products Service",
    description="Product catalogue publishing lifecycle events and mirroring inventory stock.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check(request: Request):
    return health_status(getattr(request.app.state, "components", None))


# Register exception handlers
app.add_exception_handler(APIException, api_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

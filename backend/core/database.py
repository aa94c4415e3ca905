from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy import Column, DateTime, func, TypeDecorator, CHAR, JSON
from sqlalchemy.dialects.postgresql import UUID, JSONB
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Iterable, Optional

logger = logging.getLogger(__name__)

Base = declarative_base()
CHAR_LENGTH = 255


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON on other dialects (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class GUID(TypeDecorator):
    """Platform-independent GUID type.

    Uses PostgreSQL's UUID type, otherwise uses
    CHAR(36), storing as stringified UUID values with hyphens.
    """
    impl = CHAR

    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        else:
            # Always return UUID object for consistency
            if not isinstance(value, uuid.UUID):
                return uuid.UUID(value)
            return value


class BaseModel(Base):
    """Base model with UUID primary key and timestamps"""
    __abstract__ = True

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utc_now)


class DatabaseManager:
    """Owns the async engine and session factory of one service process."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory = None

    def initialize(self, database_uri: str, env_is_local: bool):
        """Initializes the database engine and session factory."""
        if self.engine and self.session_factory:  # Prevent re-initialization
            return

        engine = create_async_engine(
            database_uri,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30
        )

        session_factory = sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False
        )
        self.set_engine_and_session_factory(engine, session_factory)
        logger.info(f"Database initialized (local={env_is_local})")

    def set_engine_and_session_factory(self, engine, session_factory):
        self.engine = engine
        self.session_factory = session_factory

    async def create_tables(self, tables: Optional[Iterable] = None):
        """
        Creates the given tables (all mapped tables when None).
        Each service passes only the tables it owns.
        """
        if self.engine is None:
            raise RuntimeError("Database not initialized.")
        table_list = list(tables) if tables is not None else None
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=table_list)

    async def dispose(self):
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


# Global database manager instance
db_manager = DatabaseManager()


def initialize_db(database_uri: str, env_is_local: bool):
    """Initializes the database manager with engine and session factory."""
    db_manager.initialize(database_uri, env_is_local)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session bound to the service database."""
    if db_manager.session_factory is None:
        raise RuntimeError("Database not initialized.")
    async with db_manager.session_factory() as session:
        yield session

"""Async SQLAlchemy engine, session factory and database client."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from welfare_grid.core.config import settings
from welfare_grid.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine for ``url``.

    Pool sizing and the PgBouncer-friendly statement cache setting only apply
    to the asyncpg driver.
    """
    if url.startswith("postgresql+asyncpg"):
        return create_async_engine(
            url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.database_echo,
            # Disable prepared statement cache for PgBouncer compatibility
            connect_args={"statement_cache_size": 0},
        )
    return create_async_engine(url, echo=settings.database_echo)


engine = build_engine(settings.database_url)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class DatabaseClient:
    """Database client with connection and schema management."""

    def __init__(self, engine: AsyncEngine):
        """Initialize database client.

        Args:
            engine: SQLAlchemy async engine
        """
        self.engine = engine

    async def connect(self) -> bool:
        """Test database connection."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            LOGGER.info("Database connection successful")
            return True

        except Exception:
            LOGGER.error("Database connection failed", exc_info=True)
            raise

    async def disconnect(self) -> None:
        """Close database connection."""
        await self.engine.dispose()
        LOGGER.info("Database connection closed")

    async def create_tables(self) -> None:
        """Create all tables from the models without dropping existing ones.

        Production schemas are managed by Alembic; this is used for local
        development and tests.
        """
        # Register the mappers on Base.metadata
        from welfare_grid.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        LOGGER.info("Database tables created/verified successfully")


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = False) -> None:
    """Initialize database connection and optionally create tables.

    Args:
        create_tables: Whether to create missing tables from the models
    """
    LOGGER.info("Initializing database connection...")
    await db_client.connect()

    if create_tables:
        await db_client.create_tables()

    LOGGER.info("Database initialization completed")


async def close_database() -> None:
    """Close database connection."""
    LOGGER.info("Closing database connection...")
    await db_client.disconnect()

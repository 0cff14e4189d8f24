"""
Database connection management with the SQLAlchemy async engine.

A ``Database`` owns one async engine and its session factory. It is built
once at process start (see ``storefront.main``) and handed to request
handlers through FastAPI dependencies, so nothing here is a module-level
singleton.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger
from storefront.database.base import Base

logger = get_logger(__name__)


def convert_database_url_to_async(url: str) -> str:
    """
    Convert a PostgreSQL URL to the asyncpg driver form.

    Args:
        url: Database connection URL

    Returns:
        Async-compatible database URL
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    Args:
        settings: Settings providing the URL and pool configuration

    Returns:
        Configured async SQLAlchemy engine
    """
    database_url = convert_database_url_to_async(settings.database_url)
    engine_kwargs: dict[str, Any] = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }

    if settings.is_sqlite:
        # Writers wait on the database lock instead of failing immediately.
        engine_kwargs["connect_args"] = {"timeout": 30}
        if settings.environment == "test":
            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )
        if settings.environment == "test":
            engine_kwargs.pop("pool_size")
            engine_kwargs.pop("max_overflow")
            engine_kwargs["poolclass"] = NullPool

    engine = create_async_engine(database_url, **engine_kwargs)

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        pool_size=None if settings.is_sqlite else settings.db_pool_size,
        environment=settings.environment,
    )

    return engine


class Database:
    """
    Async engine plus session factory.

    Attributes:
        settings: Settings the engine was built from
        engine: Async SQLAlchemy engine
        session_factory: Factory producing ``AsyncSession`` objects
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or create_engine(self.settings)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Open a session that commits on success and rolls back on error.

        Yields:
            Async database session
        """
        session = self.session_factory()

        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.debug(
                "Database session rolled back",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """Create all tables known to the model metadata."""
        # Registers every model with Base.metadata
        import storefront.database.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema created", tables=len(Base.metadata.tables))

    async def check_health(self, max_retries: int = 3, retry_delay: float = 1.0) -> bool:
        """
        Check database connectivity with exponential backoff.

        Args:
            max_retries: Maximum number of connection attempts
            retry_delay: Base delay between retries in seconds

        Returns:
            True if database is reachable, False otherwise
        """
        for attempt in range(max_retries):
            try:
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.debug("Database health check passed", attempt=attempt + 1)
                return True
            except (OperationalError, DBAPIError, OSError) as e:
                logger.warning(
                    "Database health check failed",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (2**attempt))

        logger.error("Database health check failed after all retries", max_retries=max_retries)
        return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        logger.info("Database connections closed and engine disposed")

"""
Database connection and session management for the CAS backend.

The engine is owned by a ``Database`` object that the application creates
during startup and keeps on ``app.state``. Nothing here opens connections
at import time.
"""

import asyncio
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import Settings
from .exceptions import StoreUnavailableError
from .logging import get_logger

logger = get_logger(__name__)

# Create declarative base
Base = declarative_base()


def describe_database_url(database_url: str) -> str:
    """Return host and database name of a URL without credentials."""
    if "@" not in database_url:
        return "URL format"
    host_part = database_url.split("@", 1)[1]
    return host_part.split("?", 1)[0]


class Database:
    """Async engine plus session factory for one database."""

    def __init__(self, settings: Settings, engine: AsyncEngine | None = None):
        self.settings = settings
        self.engine = engine or create_async_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            pool_pre_ping=True,
            echo=False,
        )
        self.SessionLocal = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
            class_=AsyncSession,
        )

    async def connect(self) -> None:
        """Verify the database answers; raise StoreUnavailableError otherwise.

        Called at startup so that an unreachable database stops the process
        instead of leaving it running without durable state.
        """
        target = describe_database_url(self.settings.database_url)
        try:
            async with asyncio.timeout(self.settings.store_timeout_seconds):
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            logger.error(f"Database connection failed: {e}", extra={"database": target})
            raise StoreUnavailableError("connect", str(e) or type(e).__name__, {"database": target}) from e
        logger.info(f"Using database: {target}")

    async def create_all(self) -> None:
        """Create missing tables from the ORM metadata (development helper)."""
        from ..models.registry import register_all_models

        register_all_models()
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database initialization failed: {e}")
            raise StoreUnavailableError("create_all", str(e)) from e
        logger.info("Database tables initialized successfully")

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.debug("Database connections closed")

    def get_session(self) -> AsyncSession:
        """Get a new database session."""
        return self.SessionLocal()

    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session and make sure it is closed afterwards."""
        async with self.SessionLocal() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                logger.error(f"Database session error: {e}")
                await session.rollback()
                raise StoreUnavailableError("session", str(e)) from e

    async def health_check(self) -> dict:
        """Perform database health check."""
        try:
            async with asyncio.timeout(self.settings.store_timeout_seconds):
                async with self.engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            return {"status": "unhealthy", "error": str(e) or type(e).__name__}

        pool = self.engine.pool
        return {
            "status": "healthy",
            "pool_size": pool.size() if hasattr(pool, "size") else "unknown",
            "checked_out": pool.checkedout() if hasattr(pool, "checkedout") else "unknown",
        }


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Per-request session from the application's Database."""
    database: Database = request.app.state.database
    async for session in database.session_scope():
        yield session

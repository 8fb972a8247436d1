"""Database infrastructure for the SQL-backed history store."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from loguru import logger
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from freshguard.monitoring.infrastructure.orm import Base


class Database:
    """Database connection manager."""

    def __init__(self, database_url: str):
        """
        Initialize database connection.

        Args:
            database_url: Asynchronous SQLAlchemy URL (e.g. ``sqlite+aiosqlite:///history.db``)
        """
        self.database_url = database_url

        engine_kwargs = {"echo": False}
        if make_url(database_url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_pre_ping=True,  # Verify connections before using
                pool_size=5,  # Base connection pool size
                max_overflow=10,  # Additional connections under load
                pool_recycle=3600,  # Recycle connections after 1 hour
                pool_timeout=30,  # Timeout waiting for connection (seconds)
            )

        self.async_engine = create_async_engine(database_url, **engine_kwargs)
        self.async_session_factory = async_sessionmaker(
            bind=self.async_engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info(f"History database configured ({self.async_engine.url.get_backend_name()})")

    async def create_all(self):
        """Create the history tables if they do not exist."""
        logger.info("Creating history tables...")
        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ History tables created")

    async def drop_all(self):
        """Drop the history tables."""
        logger.warning("Dropping history tables...")
        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("✓ History tables dropped")

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an asynchronous session that commits on success and rolls back on error."""
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close database connections."""
        await self.async_engine.dispose()
        logger.info("✓ History database connections closed")

"""
Blogsite - Database Configuration
Async SQLAlchemy setup (PostgreSQL in production, SQLite for local runs)
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.models.base import Base

logger = logging.getLogger(__name__)

engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def configure_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine and session factory for the given settings.

    SQLite URLs get a single shared connection so that in-memory
    databases survive across sessions.
    """
    global engine, AsyncSessionLocal

    url = settings.database_url
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=settings.database_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(
            url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )

    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    return engine


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    Services commit their own writes; this only rolls back on error.

    Yields:
        AsyncSession: Database session for request handling
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("Database engine is not configured")

    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Initialize database by creating all tables.
    Should be called during application startup.
    """
    if engine is None:
        raise RuntimeError("Database engine is not configured")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close database connections.
    Should be called during application shutdown.
    """
    if engine is not None:
        await engine.dispose()

"""
Database session configuration.

The async engine and its session factory are process-wide state created once
by ``init_engine()`` at startup. Request handlers receive sessions through
the ``get_db`` dependency; background jobs receive the factory explicitly.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from backend.app.core.config import settings

# Create declarative base for models
Base = declarative_base()

engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker] = None


def init_engine(database_url: Optional[str] = None) -> async_sessionmaker:
    """
    Create the engine and session factory once.

    Calling it again returns the already initialised factory.
    """
    global engine, AsyncSessionLocal

    if AsyncSessionLocal is not None:
        return AsyncSessionLocal

    url = database_url or settings.database_url
    engine_kwargs = {"echo": settings.db_echo}
    # SQLite pools do not accept sizing arguments
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    engine = create_async_engine(url, **engine_kwargs)
    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return AsyncSessionLocal


def get_session_factory() -> async_sessionmaker:
    """Return the initialised session factory."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_engine() first.")
    return AsyncSessionLocal


async def dispose_engine() -> None:
    """Release pooled connections (shutdown only)."""
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()

"""Process-wide async engine for the session server.

Built on first use from :func:`~onboarding_db.config.load_database_settings`
and shared by every request.  :func:`session_scope` is the transaction
boundary for code outside FastAPI's dependency injection (the cleanup CLI,
the ``get_db`` dependency itself); repositories only ever ``flush()``.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from onboarding_db.config import DatabaseSettings, load_database_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an asyncpg engine sized for questionnaire session traffic."""
    return create_async_engine(
        settings.async_url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.pool_recycle_seconds,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = load_database_settings()
        _engine = build_engine(settings)
        logger.info(
            "Database engine created (pool_size=%d, max_overflow=%d)",
            settings.pool_size, settings.max_overflow,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        # Rows stay readable after commit: views are built from them post-commit
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session; commit if the block succeeds, roll back if it raises."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close the pool; the next :func:`get_engine` call builds a fresh one."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")

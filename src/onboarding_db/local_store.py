"""SQLite-backed key-value backend for the client-side Draft Store.

Uses its own declarative base so the ``local_entries`` table never ends up
in the server's Alembic metadata.  The table is created on :meth:`init`.

Usage::

    backend = SqlKeyValueBackend("sqlite+aiosqlite:///onboarding_local.db")
    await backend.init()
    store = DraftStore(backend)
    ...
    await backend.dispose()
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import Text, delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from onboarding_flow.interfaces import KeyValueBackend

logger = logging.getLogger(__name__)


class LocalBase(DeclarativeBase):
    """Declarative base for client-local tables."""

    pass


class LocalEntry(LocalBase):
    __tablename__ = "local_entries"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class SqlKeyValueBackend(KeyValueBackend):
    """Durable string storage in a local SQLite file (via aiosqlite)."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        """Create the engine and the ``local_entries`` table if needed."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self._url, echo=False)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(LocalBase.metadata.create_all)
        logger.debug("Local draft store ready at %s", self._url)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def get(self, key: str) -> str | None:
        async with self._factory()() as db:
            result = await db.execute(select(LocalEntry.value).where(LocalEntry.key == key))
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        stmt = insert(LocalEntry).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LocalEntry.key],
            set_={"value": value, "updated_at": now},
        )
        async with self._factory()() as db:
            await db.execute(stmt)
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self._factory()() as db:
            await db.execute(delete(LocalEntry).where(LocalEntry.key == key))
            await db.commit()

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("SqlKeyValueBackend.init() has not been called")
        return self._session_factory

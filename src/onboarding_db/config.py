"""Database configuration — reads connection parameters from environment.

Supports two modes:
1. A single ``DATABASE_URL`` env var (takes precedence).
2. Individual ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``,
   ``PG_DATABASE`` env vars (convenient for docker-compose).

``sync_url`` feeds Alembic, ``async_url`` the asyncpg engine used by the
session server.  The client-side SQLite store is configured separately
(``ONBOARDING_LOCAL_DB``, see ``onboarding_flow.config``).
"""

import os
from dataclasses import dataclass


def _build_url_from_parts() -> str:
    """Construct a PostgreSQL connection string from individual env vars."""
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "onboarding")
    password = os.getenv("PG_PASSWORD", "onboarding")
    database = os.getenv("PG_DATABASE", "onboarding")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


def get_sync_url() -> str:
    """Return a synchronous connection URL for Alembic."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url.replace("postgresql+asyncpg://", "postgresql://")
    return _build_url_from_parts()


def get_async_url() -> str:
    """Return an asyncpg connection URL for the async SQLAlchemy engine."""
    url = os.getenv("DATABASE_URL")
    if url:
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url
    return _build_url_from_parts().replace("postgresql://", "postgresql+asyncpg://", 1)


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine parameters for the session server.

    Only the URL and ``DB_ECHO`` come from the environment; the pool sizing
    defaults apply to every deployment.
    """

    async_url: str
    pool_size: int = 5
    max_overflow: int = 5
    pool_recycle_seconds: int = 1800
    # Log every statement (SQL debugging only)
    echo: bool = False


def load_database_settings() -> DatabaseSettings:
    """Build engine settings from ``DATABASE_URL``/``PG_*`` and ``DB_ECHO``."""
    return DatabaseSettings(
        async_url=get_async_url(),
        echo=os.getenv("DB_ECHO", "").lower() in ("1", "true", "yes"),
    )

"""Alembic environment for the session server tables.

The target database comes from ``-x db_url=...`` when given, otherwise from
:func:`onboarding_db.config.get_sync_url`.  The client-side ``local_entries``
table is not part of this metadata; ``SqlKeyValueBackend.init()`` creates it.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

import onboarding_db.models  # noqa: F401  (registers every table on Base.metadata)
from onboarding_db.config import get_sync_url
from onboarding_db.models.base import Base

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)

_CONFIGURE_OPTS = {
    "target_metadata": Base.metadata,
    # payload is JSON on PostgreSQL; catch column type drift in autogenerate
    "compare_type": True,
}


def _database_url() -> str:
    return context.get_x_argument(as_dictionary=True).get("db_url") or get_sync_url()


def run_offline() -> None:
    """Render the migration SQL to stdout without a connection."""
    context.configure(
        url=_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = create_engine(_database_url(), poolclass=NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_CONFIGURE_OPTS)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()

import asyncio
import os
import sys
from logging.config import fileConfig

import nest_asyncio
from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

# Alembic may be driven from inside a running loop (run_migrations.py, notebooks)
nest_asyncio.apply()

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from quota_drugs.config.config import settings  # noqa: E402
from quota_drugs.db.base import Base  # noqa: E402
import quota_drugs.models  # noqa: E402,F401  departments, drugs, patients, enrollments

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_URL always wins over alembic.ini
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
target_metadata = Base.metadata


def _quota_drug_context(**options) -> None:
    """
    Shared migration options.

    SQLite cannot alter constraints in place, so batch mode rebuilds tables
    there; the partial unique index on active enrollments relies on it.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **options,
    )


def migrate_offline() -> None:
    """Emit SQL for the configured URL without connecting."""
    _quota_drug_context(
        url=config.get_main_option("sqlalchemy.url"), literal_binds=True
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate_with(connection: Connection) -> None:
    _quota_drug_context(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def migrate_online() -> None:
    engine = create_async_engine(
        config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate_with)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    migrate_offline()
else:
    asyncio.run(migrate_online())

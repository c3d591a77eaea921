"""Alembic environment for the casaflow schema.

The schema is plain SQL (``op.execute``); there is no ORM metadata. The
connection reuses the asyncpg driver the application already depends on,
so the URL is rewritten to ``postgresql+asyncpg://``.

URL lookup order: DATABASE_URL, the ``database`` entry of the YAML file
named by CASAFLOW_CONFIG, then ``sqlalchemy.url`` in alembic.ini.
"""

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = None


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", "")
    config_path = os.environ.get("CASAFLOW_CONFIG", "")
    if not url and config_path and os.path.exists(config_path):
        from casaflow.app import _load_config
        url = str(_load_config(config_path).get("database") or "")
    url = url or config.get_main_option("sqlalchemy.url", "")
    if not url:
        raise RuntimeError("No database URL: set DATABASE_URL or CASAFLOW_CONFIG")
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def run_migrations_offline() -> None:
    """Emit the SQL instead of running it (``alembic upgrade --sql``)."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(_run_sync)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())

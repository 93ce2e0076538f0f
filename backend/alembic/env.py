"""
SnipSync Alembic Environment
==============================

What:  Runs the snippet migrations against the database named by DATABASE_URL.
How:   The URL is read from app.config.settings, never from alembic.ini, and is
       handed straight to create_async_engine. Routing it through
       config.set_main_option would run it through configparser interpolation,
       which breaks on percent-encoded passwords.

Backends:
    PostgreSQL (asyncpg): plain ALTER statements.
    SQLite (aiosqlite):   render_as_batch=True, since SQLite cannot ALTER most
                          column properties in place; Alembic rebuilds the
                          table instead.

Usage (from backend/):
    alembic upgrade head
    alembic revision --autogenerate -m "..."
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.config import settings
from app.database import Base

# Registers snippets / snippet_tags on Base.metadata for --autogenerate
from app.models.snippet import Snippet, SnippetTag  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

DATABASE_URL = settings.database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=IS_SQLITE,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout (`alembic upgrade head --sql`) without connecting."""
    _configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Connect with the app's async driver and run migrations via run_sync."""
    # NullPool: a migration run is one short-lived connection
    engine = create_async_engine(DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())

"""
Alembic Migration Environment
===============================

What:  Applies Photocat schema revisions to the record store database.
How:   Online runs reuse photocat.database.build_engine(), so migrations
       connect with exactly the URL and dialect the app uses. Offline runs
       (`alembic upgrade head --sql`) render the DDL for the same URL.
Who:   `alembic upgrade head` (run from backend/) in deployment scripts.

SQLite:
    SQLite cannot ALTER most columns in place, so revisions run in batch
    mode there (copy-and-swap tables). PostgreSQL runs them directly.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from photocat.config import settings
from photocat.database import Base, build_engine, dispose_engine

# Registers the photos table on Base.metadata for --autogenerate
from photocat.models.photo import Photo  # noqa: F401

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

photo_metadata = Base.metadata


def configure_context(**kwargs) -> None:
    context.configure(
        target_metadata=photo_metadata,
        render_as_batch=settings.is_sqlite,
        compare_type=True,
        **kwargs,
    )


def emit_offline_sql() -> None:
    """Print the migration DDL instead of executing it."""
    configure_context(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def apply_on_connection(connection: Connection) -> None:
    configure_context(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def apply_online() -> None:
    engine = build_engine(settings)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(apply_on_connection)
    finally:
        await dispose_engine(engine)


if context.is_offline_mode():
    emit_offline_sql()
else:
    asyncio.run(apply_online())

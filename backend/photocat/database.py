"""
Photocat Backend — Database Engine & Session Factory
======================================================

What:  Builders for the async SQLAlchemy engine and session factory, plus the
       declarative Base shared by all ORM models.
How:   The app lifespan calls build_engine() once on startup and
       dispose_engine() on shutdown. Nothing is created at import time, so
       tests can point a RecordStore at their own throwaway engine.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour

    SQLite URLs skip the pool arguments; aiosqlite manages its own
    connection per session.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from photocat.config import Settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (Alembic reads its metadata)."""
    pass


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the record store.

    Echoes SQL only when LOG_LEVEL=DEBUG.
    """
    kwargs = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory with expire_on_commit=False.

    Rows read inside a transaction stay usable after commit, which the record
    store relies on when converting ORM rows into response models.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Gracefully closes all pooled connections (called on shutdown)."""
    await engine.dispose()

"""
Photocat Backend — Record Store
=================================

What:  Generic create/read/update/delete/list for catalogue records.
How:   Async SQLAlchemy against the `photos` table. Each operation runs in
       its own short transaction and returns PhotoRecord response models,
       so callers never hold ORM objects or sessions.
Who:   Used by PhotoService (the /data endpoints) and the health check.

Lifecycle:
    Built in the app lifespan with RecordStore.from_settings(), closed on
    shutdown with close() (disposes the engine and its pool).

Error translation:
    StaleDataError (version check failed)           → WriteConflictError
    serialization failure / deadlock (40001, 40P01) → WriteConflictError
    SQLite "database is locked"                     → WriteConflictError
    any other SQLAlchemyError                       → DatabaseError
    unknown or malformed identifier                 → NotFoundError

Identifiers are opaque strings to callers. Internally they are UUIDs; a
string that is not a UUID cannot name a record and is reported as missing.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from photocat.config import Settings
from photocat.database import Base, build_engine, build_session_factory, dispose_engine
from photocat.exceptions import DatabaseError, NotFoundError, WriteConflictError
from photocat.models.photo import Photo, utcnow
from photocat.schemas.photo import PhotoRecord

logger = logging.getLogger(__name__)

CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def is_write_conflict(error: DBAPIError) -> bool:
    """Classify a driver error as a retryable write conflict."""
    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_record(photo: Photo) -> PhotoRecord:
    return PhotoRecord(
        id=str(photo.id),
        image_url=photo.image_url,
        image_path=photo.image_path,
        created_at=as_utc(photo.created_at),
        updated_at=as_utc(photo.updated_at),
        **(photo.fields or {}),
    )


class RecordStore:
    """CRUD access to the photos collection."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = build_session_factory(engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecordStore":
        return cls(build_engine(settings))

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def create_schema(self) -> None:
        """Create missing tables (SQLite/dev and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Record store ping failed: %s", str(e))
            return False

    async def close(self) -> None:
        await dispose_engine(self.engine)

    # ── Operations ────────────────────────────────────────────────────────

    async def create(
        self,
        fields: Dict[str, Any],
        image_url: Optional[str] = None,
        image_path: Optional[str] = None,
    ) -> PhotoRecord:
        async with self._transaction("create") as session:
            photo = Photo(
                fields=dict(fields),
                image_url=image_url or None,
                image_path=image_path or None,
            )
            session.add(photo)
        logger.info("Record created: %s", photo.id)
        return to_record(photo)

    async def get(self, record_id: str) -> Optional[PhotoRecord]:
        uid = self._parse_id(record_id)
        if uid is None:
            return None
        async with self._transaction("get", record_id) as session:
            photo = await session.get(Photo, uid)
        return to_record(photo) if photo is not None else None

    async def list_recent(self, limit: int) -> List[PhotoRecord]:
        """At most `limit` records, newest first by creation time."""
        async with self._transaction("list") as session:
            result = await session.execute(
                select(Photo)
                .order_by(Photo.created_at.desc(), Photo.id.desc())
                .limit(limit)
            )
            photos = list(result.scalars().all())
        return [to_record(photo) for photo in photos]

    async def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        image: Optional[Dict[str, Optional[str]]] = None,
    ) -> PhotoRecord:
        """
        Partial update: merge `fields` into the stored ones and overwrite the
        image_url/image_path keys present in `image`.

        Raises:
            NotFoundError:      no such record
            WriteConflictError: another writer changed the row first
        """
        uid = self._require_id(record_id)
        image = image or {}
        async with self._transaction("update", record_id) as session:
            photo = await session.get(Photo, uid)
            if photo is None:
                raise NotFoundError(resource="photo", resource_id=record_id)
            if fields:
                # New dict object so the JSON column is marked dirty
                photo.fields = {**(photo.fields or {}), **fields}
            if "image_url" in image:
                photo.image_url = image["image_url"]
            if "image_path" in image:
                photo.image_path = image["image_path"]
            photo.updated_at = utcnow()
        logger.info("Record updated: %s (version=%d)", photo.id, photo.version)
        return to_record(photo)

    async def delete(self, record_id: str) -> PhotoRecord:
        """
        Read and delete a record in one transaction.

        Returns:
            The record as it was just before deletion (callers use its
            imageUrl for blob cleanup).
        """
        uid = self._require_id(record_id)
        async with self._transaction("delete", record_id) as session:
            photo = await session.get(Photo, uid)
            if photo is None:
                raise NotFoundError(resource="photo", resource_id=record_id)
            record = to_record(photo)
            await session.delete(photo)
        logger.info("Record deleted: %s", record.id)
        return record

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _parse_id(record_id: str) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(record_id))
        except ValueError:
            return None

    def _require_id(self, record_id: str) -> uuid.UUID:
        uid = self._parse_id(record_id)
        if uid is None:
            raise NotFoundError(resource="photo", resource_id=record_id)
        return uid

    @asynccontextmanager
    async def _transaction(
        self,
        operation: str,
        record_id: Optional[str] = None,
    ) -> AsyncIterator[AsyncSession]:
        """
        One session, one transaction. Commits when the block exits cleanly,
        rolls back otherwise, and translates driver errors.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except StaleDataError as e:
            logger.warning("Write conflict on %s %s: %s", operation, record_id, str(e))
            raise WriteConflictError(context={"operation": operation, "record_id": record_id}) from e
        except DBAPIError as e:
            if is_write_conflict(e):
                logger.warning("Write conflict on %s %s: %s", operation, record_id, str(e.orig))
                raise WriteConflictError(context={"operation": operation, "record_id": record_id}) from e
            logger.error("Database error on %s %s: %s", operation, record_id, str(e), exc_info=True)
            raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__}) from e
        except SQLAlchemyError as e:
            logger.error("Database error on %s %s: %s", operation, record_id, str(e), exc_info=True)
            raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__}) from e

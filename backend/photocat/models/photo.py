"""
Photocat Backend — Photo SQLAlchemy Model
===========================================

What:  ORM model for the `photos` collection: one catalogue record per row.
How:   User-supplied scalar fields live in a single JSON document column so
       records stay schema-free the way a document collection is, while
       the image reference and timestamps are real columns.

Table Layout:
    id          UUID primary key, assigned by the store
    fields      JSON (JSONB on PostgreSQL): title, description, date, ...
    image_url   public blob URL, NULL when the record has no image
    image_path  blob pathname/key, kept to simplify deletion
    created_at  set once at insert, drives newest-first listing
    updated_at  refreshed on every update
    version     optimistic concurrency counter (mapper version_id_col)

    Every UPDATE/DELETE issued by the ORM carries `WHERE version = :seen`.
    When a concurrent writer got there first the statement matches zero rows
    and SQLAlchemy raises StaleDataError, which the record store reports as
    a WriteConflictError.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from photocat.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Photo(Base):
    """A catalogue entry: metadata plus an optional image reference."""

    __tablename__ = "photos"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Opaque record identifier",
    )

    fields: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
        comment="User-supplied scalar fields (title, description, date, ...)",
    )

    image_url: Mapped[Optional[str]] = mapped_column(
        String(2048),
        nullable=True,
        comment="Public URL returned by the blob store",
    )

    image_path: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="Blob store pathname for the image",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When this record was created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When this record was last written (UTC)",
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Optimistic concurrency counter",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_photos_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, image_url={self.image_url!r}, version={self.version})>"

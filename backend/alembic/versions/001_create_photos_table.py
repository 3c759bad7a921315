"""Create photos table

Revision ID: 001
Revises: None
Create Date: 2024-06-10 00:00:00.000000+00:00

What:  Creates the `photos` table holding catalogue records.
How:   User fields go into one JSONB document; the image reference,
       timestamps and the optimistic-concurrency version are columns.

Rollback: downgrade() drops the table (all records lost; blobs untouched).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "photos",

        sa.Column(
            "id",
            sa.Uuid(),
            nullable=False,
            comment="Opaque record identifier",
        ),

        # title, description, date and any other scalar user fields
        sa.Column(
            "fields",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            comment="User-supplied scalar fields (title, description, date, ...)",
        ),

        sa.Column(
            "image_url",
            sa.String(2048),
            nullable=True,
            comment="Public URL returned by the blob store",
        ),

        sa.Column(
            "image_path",
            sa.String(1024),
            nullable=True,
            comment="Blob store pathname for the image",
        ),

        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this record was created (UTC)",
        ),

        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When this record was last written (UTC)",
        ),

        # Incremented by the ORM on every UPDATE; stale writers match 0 rows
        sa.Column(
            "version",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("1"),
            comment="Optimistic concurrency counter",
        ),

        sa.PrimaryKeyConstraint("id"),
    )

    # GET /data lists newest first
    op.create_index(
        "idx_photos_created_at",
        "photos",
        [sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_photos_created_at", table_name="photos")
    op.drop_table("photos")

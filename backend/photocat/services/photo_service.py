"""
Photocat Backend — Photo Service (Record CRUD Orchestrator)
=============================================================

What:  Business logic behind the /data endpoints.
How:   Composes a RecordStore with a BlobStore. Writes go through the
       write-conflict retry combinator; deletes also clean up the image blob.
Who:   Called by the routes in routes/photos.py.

Delete Flow (DELETE /data/{id}):
    ┌──────────────┐    ┌──────────────────┐    ┌─────────────────────┐
    │ Read + delete │───▶│ Record gone (200)│───▶│ blob delete(imageUrl)│
    │ (RecordStore) │    └──────────────────┘    │ best effort, logged │
    └──────────────┘                             └─────────────────────┘

    The blob delete runs only after the record delete committed, once, and
    only when the record had an imageUrl. Its failure never changes the
    response: an orphaned blob is acceptable, a record pointing at a
    missing blob is not.

Update semantics:
    PUT merges the sent keys into the record. Replacing imageUrl does NOT
    delete the previous blob; that image stays in the store.
"""

import logging
from typing import List

from photocat.exceptions import NotFoundError
from photocat.schemas.photo import PhotoPayload, PhotoRecord
from photocat.services.blob_store import BlobStore
from photocat.services.record_store import RecordStore
from photocat.services.retry import write_conflict_retrying

logger = logging.getLogger(__name__)


class PhotoService:
    """CRUD for catalogue records plus image cleanup on delete."""

    def __init__(
        self,
        record_store: RecordStore,
        blob_store: BlobStore,
        list_limit: int = 100,
        max_attempts: int = 3,
        retry_delay: float = 0.1,
    ):
        self.record_store = record_store
        self.blob_store = blob_store
        self.list_limit = list_limit
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    def _retrying(self):
        return write_conflict_retrying(self.max_attempts, self.retry_delay)

    async def list_photos(self) -> List[PhotoRecord]:
        """Newest records first, capped at list_limit."""
        return await self.record_store.list_recent(self.list_limit)

    async def get_photo(self, record_id: str) -> PhotoRecord:
        record = await self.record_store.get(record_id)
        if record is None:
            raise NotFoundError(resource="photo", resource_id=record_id)
        return record

    async def create_photo(self, payload: PhotoPayload) -> PhotoRecord:
        image = payload.image_changes()
        async for attempt in self._retrying():
            with attempt:
                record = await self.record_store.create(
                    payload.user_fields(),
                    image_url=image.get("image_url"),
                    image_path=image.get("image_path"),
                )
        return record

    async def update_photo(self, record_id: str, payload: PhotoPayload) -> PhotoRecord:
        """
        Partial update with bounded retry on write conflicts.

        Raises:
            NotFoundError:      record does not exist (not retried)
            WriteConflictError: still conflicting after max_attempts
        """
        async for attempt in self._retrying():
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "Retrying update of %s (attempt %d/%d)",
                        record_id,
                        attempt.retry_state.attempt_number,
                        self.max_attempts,
                    )
                record = await self.record_store.update(
                    record_id,
                    payload.user_fields(),
                    payload.image_changes(),
                )
        return record

    async def delete_photo(self, record_id: str) -> PhotoRecord:
        """
        Delete the record, then try once to delete its image blob.

        Returns:
            The deleted record.
        """
        async for attempt in self._retrying():
            with attempt:
                record = await self.record_store.delete(record_id)

        if record.image_url:
            try:
                await self.blob_store.delete(record.image_url)
            except Exception as e:
                logger.warning(
                    "Image cleanup failed for deleted record %s (%s): %s",
                    record.id,
                    record.image_url,
                    str(e),
                )
        return record

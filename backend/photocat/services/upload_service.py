"""
Photocat Backend — Upload Service (Upload Pipeline Orchestrator)
==================================================================

What:  Runs one image upload from raw request stream to stored blob.
How:   Composes MultipartImageReader, ImageTranscoder and a BlobStore.
Who:   Called by POST /api/upload; also handles direct blob deletion for
       DELETE /api/image.

Per-request state machine:
    ┌───────────┐   ┌────────────┐   ┌─────────────┐   ┌─────────┐   ┌────────────┐
    │ Receiving │──▶│ Validating │──▶│ Transcoding │──▶│ Storing │──▶│ Responding │
    └───────────┘   └────────────┘   └─────────────┘   └─────────┘   └────────────┘
          │                │                 │                │
          └──── Rejected (4xx) ──────────────┤                │
                                             └── Failed (5xx) ┘

    Receiving and Validating overlap: type and size are checked while the
    body streams in, so an oversized or disallowed upload is rejected before
    the transcoder ever sees it.

Failure semantics:
    put() is called exactly once with the final bytes. If it fails nothing
    was persisted, so there is nothing to clean up.

The service keeps no per-request state on self; one instance serves all
concurrent uploads.
"""

import logging
from typing import AsyncIterator, FrozenSet, Mapping, Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from photocat.exceptions import ClientInputError, PayloadTooLargeError
from photocat.schemas.photo import UploadResponse
from photocat.services.blob_store import BlobStore, generate_blob_key
from photocat.services.image_transcoder import ImageTranscoder
from photocat.services.multipart_reader import (
    MULTIPART_OVERHEAD,
    MultipartImageReader,
    ReceivedFile,
)

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES: FrozenSet[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/svg+xml",
})

UPLOAD_FIELD = "image"


class UploadService:
    """Upload pipeline: receive → validate → transcode → store."""

    def __init__(
        self,
        blob_store: BlobStore,
        transcoder: ImageTranscoder,
        max_upload_size: int,
        cache_max_age: int,
        key_prefix: str = "",
        allowed_types: FrozenSet[str] = ALLOWED_IMAGE_TYPES,
        field_name: str = UPLOAD_FIELD,
    ):
        self.blob_store = blob_store
        self.transcoder = transcoder
        self.max_upload_size = max_upload_size
        self.cache_max_age = cache_max_age
        self.key_prefix = key_prefix
        self.allowed_types = allowed_types
        self.field_name = field_name

    async def receive(
        self,
        headers: Mapping[str, str],
        stream: AsyncIterator[bytes],
    ) -> ReceivedFile:
        """
        Receiving + Validating: read the multipart body incrementally.

        Args:
            headers: Request headers (content-type, content-length)
            stream:  Async iterator over raw body chunks

        Raises:
            PayloadTooLargeError:       limit crossed (stream abandoned there)
            UnsupportedMediaTypeError:  declared part type not allowed
            ClientInputError:           anything else wrong with the body
        """
        declared_length = headers.get("content-length")
        if declared_length and declared_length.isdigit():
            if int(declared_length) > self.max_upload_size + MULTIPART_OVERHEAD:
                raise PayloadTooLargeError(
                    self.max_upload_size,
                    context={"content_length": int(declared_length)},
                )

        reader = MultipartImageReader(
            headers.get("content-type"),
            field_name=self.field_name,
            max_size=self.max_upload_size,
            allowed_types=self.allowed_types,
        )

        try:
            async for chunk in stream:
                reader.feed(chunk)
        except ClientDisconnect as e:
            logger.info("Client disconnected during upload; processing stopped")
            raise ClientInputError(message="Upload aborted by client") from e

        return reader.finish()

    async def handle_upload(
        self,
        headers: Mapping[str, str],
        stream: AsyncIterator[bytes],
    ) -> UploadResponse:
        """
        Complete upload workflow for POST /api/upload.

        Returns:
            UploadResponse {url, pathname, contentType, size}

        Raises:
            ClientInputError (and subclasses): 4xx
            ProcessingError, StoreUnavailableError: 5xx
        """
        received = await self.receive(headers, stream)
        logger.info(
            "Received upload: filename=%s, type=%s, size=%d bytes",
            received.filename or "unknown",
            received.content_type,
            received.size,
        )

        # Pillow work is CPU-bound; keep it off the event loop
        result = await run_in_threadpool(
            self.transcoder.transcode, received.data, received.content_type
        )

        key = generate_blob_key(received.filename, result.content_type, prefix=self.key_prefix)
        stored = await self.blob_store.put(
            key,
            result.data,
            result.content_type,
            self.cache_max_age,
        )

        return UploadResponse(
            url=stored.url,
            pathname=stored.pathname,
            content_type=stored.content_type,
            size=len(result.data),
        )

    async def delete_image(self, url: Optional[str]) -> str:
        """
        Delete a blob directly (DELETE /api/image).

        Unlike the record-delete path, store failures propagate here.
        """
        if not url or not url.strip():
            raise ClientInputError(message="An image URL is required", field="url")
        url = url.strip()
        await self.blob_store.delete(url)
        return url

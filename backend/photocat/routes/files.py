"""
Photocat Backend — Stored File Route
======================================

What:  GET /files/{path} serves blobs written by LocalBlobStore.
Who:   <img> tags pointing at URLs returned by POST /api/upload when
       BLOB_BACKEND=local. Not mounted for the Vercel backend, whose URLs
       are served by Vercel's CDN.
"""

from pathlib import PurePosixPath

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from photocat.dependencies import get_blob_store
from photocat.exceptions import NotFoundError
from photocat.services.blob_store import EXTENSION_CONTENT_TYPES, BlobStore
from photocat.services.local_blob_store import LocalBlobStore

router = APIRouter(tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve a stored image",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Invalid path"},
        404: {"description": "File not found"},
    },
)
async def serve_file(
    file_path: str,
    request: Request,
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileResponse:
    if not isinstance(blob_store, LocalBlobStore):
        raise NotFoundError(resource="file", resource_id=file_path)

    # resolve() refuses paths that escape the storage root
    full_path = blob_store.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    media_type = EXTENSION_CONTENT_TYPES.get(
        PurePosixPath(file_path).suffix.lower(), "application/octet-stream"
    )
    return FileResponse(
        path=str(full_path),
        media_type=media_type,
        headers={"Cache-Control": f"public, max-age={request.app.state.settings.blob_cache_max_age}"},
    )

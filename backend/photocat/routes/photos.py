"""
Photocat Backend — Photo Record Route Handlers
================================================

What:  CRUD for catalogue records under /data.
How:   Thin handlers around PhotoService. Bodies are validated by
       PhotoPayload (reserved keys such as id are dropped there); responses
       are serialized by alias, so records come back in camelCase.
Who:   Called by the catalogue page and the upload form.

    GET    /data        newest first, at most LIST_LIMIT records
    POST   /data        201 with the stored record
    GET    /data/{id}   404 when missing
    PUT    /data/{id}   partial update, 404 when missing, 409 after retries
    DELETE /data/{id}   200 with the deleted record; image removed best effort
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from photocat.dependencies import get_photo_service
from photocat.schemas.photo import ErrorResponse, PhotoPayload, PhotoRecord
from photocat.services.photo_service import PhotoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["Photos"])

NOT_FOUND = {404: {"description": "Record not found", "model": ErrorResponse}}
SERVER_ERROR = {500: {"description": "Server error", "model": ErrorResponse}}


@router.get(
    "",
    response_model=List[PhotoRecord],
    responses=SERVER_ERROR,
    summary="List records",
    description="Returns the most recently created records, newest first.",
)
async def list_photos(
    photo_service: PhotoService = Depends(get_photo_service),
) -> List[PhotoRecord]:
    return await photo_service.list_photos()


@router.post(
    "",
    status_code=201,
    response_model=PhotoRecord,
    responses={400: {"description": "Invalid record", "model": ErrorResponse}, **SERVER_ERROR},
    summary="Create a record",
    description="Stores the submitted fields. Any client-supplied id is ignored.",
)
async def create_photo(
    payload: PhotoPayload,
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoRecord:
    return await photo_service.create_photo(payload)


@router.get(
    "/{record_id}",
    response_model=PhotoRecord,
    responses={**NOT_FOUND, **SERVER_ERROR},
    summary="Get a record",
)
async def get_photo(
    record_id: str,
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoRecord:
    return await photo_service.get_photo(record_id)


@router.put(
    "/{record_id}",
    response_model=PhotoRecord,
    responses={
        **NOT_FOUND,
        409: {"description": "Write conflict persisted after retries", "model": ErrorResponse},
        **SERVER_ERROR,
    },
    summary="Update a record",
    description="Merges the submitted fields into the record. Keys not sent are left unchanged.",
)
async def update_photo(
    record_id: str,
    payload: PhotoPayload,
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoRecord:
    return await photo_service.update_photo(record_id, payload)


@router.delete(
    "/{record_id}",
    response_model=PhotoRecord,
    responses={**NOT_FOUND, **SERVER_ERROR},
    summary="Delete a record",
    description=(
        "Deletes the record and then its image blob. A failed blob delete is "
        "logged and does not affect the response."
    ),
)
async def delete_photo(
    record_id: str,
    photo_service: PhotoService = Depends(get_photo_service),
) -> PhotoRecord:
    return await photo_service.delete_photo(record_id)

"""
Photocat Backend — Upload Route Handlers
==========================================

What:  POST /api/upload (store one image) and DELETE /api/image (remove a
       blob by URL).
How:   The upload handler hands the raw request stream to UploadService, so
       the size and type limits fire while the body is still arriving.
Who:   Called by the upload form, which sends the file in the `image` field
       and copies the returned url/pathname into the record it saves.

Error responses (global exception handlers):
    400: not multipart, no file, disallowed type, too large, undecodable
    500: transcoding or blob store failure ({"error", "details"})
"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request

from photocat.dependencies import get_upload_service
from photocat.schemas.photo import (
    ErrorResponse,
    ImageDeleteRequest,
    ImageDeleteResponse,
    UploadResponse,
)
from photocat.services.upload_service import UPLOAD_FIELD, UploadService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Images"])

# The body is parsed by hand, so describe it for the OpenAPI docs
UPLOAD_REQUEST_BODY = {
    "requestBody": {
        "required": True,
        "content": {
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "required": [UPLOAD_FIELD],
                    "properties": {
                        UPLOAD_FIELD: {
                            "type": "string",
                            "format": "binary",
                            "description": "JPEG, PNG, WebP or SVG image",
                        },
                    },
                },
            },
        },
    },
}


@router.post(
    "/upload",
    status_code=201,
    response_model=UploadResponse,
    responses={
        201: {"description": "Image stored", "model": UploadResponse},
        400: {"description": "Invalid upload", "model": ErrorResponse},
        500: {"description": "Processing or storage failure", "model": ErrorResponse},
    },
    summary="Upload an image",
    description=(
        "Accepts one image in the multipart field 'image'. The image is resized to "
        "fit the configured bounding box, re-encoded and stored in the blob store. "
        "Returns the public URL and the blob pathname."
    ),
    openapi_extra=UPLOAD_REQUEST_BODY,
)
async def upload_image(
    request: Request,
    upload_service: UploadService = Depends(get_upload_service),
) -> UploadResponse:
    result = await upload_service.handle_upload(request.headers, request.stream())
    logger.info("Upload stored: %s (%d bytes)", result.pathname, result.size)
    return result


@router.delete(
    "/image",
    response_model=ImageDeleteResponse,
    responses={
        400: {"description": "No URL given", "model": ErrorResponse},
        500: {"description": "Blob store failure", "model": ErrorResponse},
    },
    summary="Delete a stored image",
    description="Deletes a blob by URL, given as JSON body {\"url\": ...} or as ?url= query.",
)
async def delete_image(
    body: Optional[ImageDeleteRequest] = Body(default=None),
    url: Optional[str] = Query(default=None, description="Blob URL to delete"),
    upload_service: UploadService = Depends(get_upload_service),
) -> ImageDeleteResponse:
    target = body.url if body is not None else url
    deleted = await upload_service.delete_image(target)
    return ImageDeleteResponse(deleted=deleted)


@router.delete(
    "/image/{image_url:path}",
    response_model=ImageDeleteResponse,
    responses={500: {"description": "Blob store failure", "model": ErrorResponse}},
    summary="Delete a stored image (URL in path)",
)
async def delete_image_by_path(
    image_url: str,
    upload_service: UploadService = Depends(get_upload_service),
) -> ImageDeleteResponse:
    deleted = await upload_service.delete_image(image_url)
    return ImageDeleteResponse(deleted=deleted)

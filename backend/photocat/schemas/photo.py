"""
Photocat Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract with the browser form.
How:   FastAPI validates request bodies against these models, serializes
       responses through them (by alias, so the wire format is camelCase)
       and generates the OpenAPI docs from them.

Wire format:
    Records are flat JSON objects: the store-assigned `id`, every user field
    at top level, `imageUrl`, `imagePath`, `createdAt`, `updatedAt`.
    Errors always use `{error, details?, requestId?}`.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, field_validator, model_validator

# Keys a client may send but never gets to choose.
# id/_id: identifier injection; createdAt/updatedAt: server-assigned.
RESERVED_KEYS = frozenset({"id", "_id", "createdAt", "updatedAt", "created_at", "updated_at"})

SCALAR_TYPES = (str, int, float, bool, type(None))

_http_url = TypeAdapter(AnyHttpUrl)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class PhotoPayload(BaseModel):
    """
    What:  Body of POST /data and PUT /data/{id}.
    How:   title/description/date are declared for the docs; any other scalar
           key is accepted as an extra user field. Reserved keys are dropped
           before validation runs.

    For PUT only the keys present in the body are written (partial update),
    which is why user_fields() and image_changes() use exclude_unset.
    """

    title: Optional[str] = Field(default=None, description="Photo title")
    description: Optional[str] = Field(default=None, description="Free-text description")
    date: Optional[str] = Field(default=None, description="Date the photo was taken")
    image_url: Optional[str] = Field(
        default=None,
        alias="imageUrl",
        description="Public URL returned by POST /api/upload",
    )
    image_path: Optional[str] = Field(
        default=None,
        alias="imagePath",
        description="Blob pathname returned by POST /api/upload",
    )

    model_config = {"extra": "allow", "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def drop_reserved_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in RESERVED_KEYS}
        return data

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: Optional[str]) -> Optional[str]:
        """imageUrl must be empty or an absolute http(s) URL; stored verbatim."""
        if v is None or v == "":
            return v
        _http_url.validate_python(v)
        return v

    @model_validator(mode="after")
    def validate_extra_fields_are_scalar(self) -> "PhotoPayload":
        for key, value in (self.model_extra or {}).items():
            if not isinstance(value, SCALAR_TYPES):
                raise ValueError(f"Field '{key}' must be a string, number, boolean or null")
        return self

    def user_fields(self) -> Dict[str, Any]:
        """The user-supplied fields that were actually sent, image keys excluded."""
        return self.model_dump(exclude_unset=True, exclude={"image_url", "image_path"})

    def image_changes(self) -> Dict[str, Optional[str]]:
        """image_url/image_path entries that were actually sent ('' normalised to None)."""
        sent = self.model_dump(exclude_unset=True, include={"image_url", "image_path"})
        return {key: (value or None) for key, value in sent.items()}


class ImageDeleteRequest(BaseModel):
    """Body of DELETE /api/image."""

    url: str = Field(description="Blob URL (or pathname) to delete")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PhotoRecord(BaseModel):
    """
    What:  A catalogue record as returned by every /data endpoint.
    How:   User fields are carried as extras so arbitrary keys round-trip.
    """

    id: str = Field(description="Store-assigned identifier")
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_path: Optional[str] = Field(default=None, alias="imagePath")
    created_at: datetime = Field(alias="createdAt", description="Creation time (UTC)")
    updated_at: datetime = Field(alias="updatedAt", description="Last write time (UTC)")

    model_config = {"extra": "allow", "populate_by_name": True}


class UploadResponse(BaseModel):
    """
    What:  Result of POST /api/upload (HTTP 201).
    Who:   The form copies `url` into imageUrl and `pathname` into imagePath.
    """

    url: str = Field(description="Public URL of the stored image")
    pathname: str = Field(description="Blob key inside the store")
    content_type: str = Field(alias="contentType", description="Content-type of the stored bytes")
    size: int = Field(description="Size of the stored bytes")

    model_config = {"populate_by_name": True}


class ImageDeleteResponse(BaseModel):
    deleted: str


class ErrorResponse(BaseModel):
    """
    Standardized error envelope for all API errors.

    Example:
        {"error": "File size exceeds maximum of 10MB. Please upload a smaller image."}
        {"error": "Failed to upload image", "details": "Blob storage is unavailable"}
    """

    error: str = Field(description="Error message")
    details: Optional[str] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, alias="requestId")

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Record store connectivity: connected, disconnected")
    blob_store: str = Field(alias="blobStore", description="Blob store status: available, unavailable")
    uptime_seconds: float = Field(alias="uptimeSeconds", description="Seconds since service started")

    model_config = {"populate_by_name": True}

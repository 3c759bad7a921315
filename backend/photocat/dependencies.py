"""
Photocat Backend — Dependency Wiring
======================================

What:  Builds the stores and services from Settings and exposes them to
       routes as FastAPI dependencies.
How:   The app lifespan calls build_components() once and puts each
       component on app.state. Routes ask for them with Depends(get_...),
       which reads app.state at request time.

Testing:
    Tests replace any component with app.dependency_overrides, e.g.
        app.dependency_overrides[get_blob_store] = lambda: fake_store
    so no global client is ever patched.
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from photocat.config import Settings
from photocat.services.blob_store import BlobStore
from photocat.services.image_transcoder import ImageTranscoder
from photocat.services.local_blob_store import LocalBlobStore
from photocat.services.photo_service import PhotoService
from photocat.services.record_store import RecordStore
from photocat.services.upload_service import UploadService
from photocat.services.vercel_blob_store import VercelBlobStore

logger = logging.getLogger(__name__)


@dataclass
class Components:
    record_store: RecordStore
    blob_store: BlobStore
    upload_service: UploadService
    photo_service: PhotoService


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.blob_backend == "local":
        return LocalBlobStore(settings.storage_root, settings.public_base_url)
    return VercelBlobStore(
        token=settings.blob_read_write_token,
        api_url=settings.blob_api_url,
        api_version=settings.blob_api_version,
        timeout=settings.blob_request_timeout,
    )


def build_components(settings: Settings) -> Components:
    record_store = RecordStore.from_settings(settings)
    blob_store = build_blob_store(settings)
    transcoder = ImageTranscoder(
        max_width=settings.image_max_width,
        max_height=settings.image_max_height,
        quality=settings.image_quality,
        output_format=settings.image_output_format,
    )
    upload_service = UploadService(
        blob_store=blob_store,
        transcoder=transcoder,
        max_upload_size=settings.max_upload_size,
        cache_max_age=settings.blob_cache_max_age,
        key_prefix=settings.blob_key_prefix,
    )
    photo_service = PhotoService(
        record_store=record_store,
        blob_store=blob_store,
        list_limit=settings.list_limit,
        max_attempts=settings.write_conflict_max_attempts,
        retry_delay=settings.write_conflict_delay,
    )
    logger.info(
        "Components built: record_store=%s, blob_store=%s, output=%s",
        "sqlite" if settings.is_sqlite else "postgresql",
        blob_store.name,
        settings.image_output_format,
    )
    return Components(
        record_store=record_store,
        blob_store=blob_store,
        upload_service=upload_service,
        photo_service=photo_service,
    )


# ── FastAPI Dependencies ──────────────────────────────────────────────────


def get_record_store(request: Request) -> RecordStore:
    return request.app.state.record_store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.upload_service


def get_photo_service(request: Request) -> PhotoService:
    return request.app.state.photo_service

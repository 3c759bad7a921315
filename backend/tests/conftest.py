"""
Photocat Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Real components wherever they are cheap: a throwaway SQLite database
       (aiosqlite) for the record store, a temp directory for the local blob
       store, Pillow-generated images. The API client runs the app through
       httpx's ASGITransport with every component injected via
       app.dependency_overrides (the lifespan is not run by ASGITransport).

Fixture Hierarchy:
    Function-scoped:
    ├── temp_storage:     temporary blob directory
    ├── make_image:       factory → encoded image bytes (PNG/JPEG/WebP)
    ├── multipart:        factory → (body, content-type) for upload requests
    ├── record_store:     RecordStore on a fresh SQLite file
    ├── local_blob_store: LocalBlobStore on temp_storage
    ├── transcoder:       ImageTranscoder with the default 800×800 box
    ├── services:         UploadService + PhotoService wired to the above
    ├── app:              FastAPI app with dependency overrides
    └── test_client:      httpx AsyncClient bound to `app`
"""

import io
import os
import tempfile
from typing import Iterable, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Set BEFORE any photocat import so the settings singleton never points at
# a real database or the Vercel API
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./photocat_test.db"
os.environ["BLOB_BACKEND"] = "local"
os.environ["BLOB_READ_WRITE_TOKEN"] = ""
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="photocat_test_")
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["LOG_LEVEL"] = "WARNING"

from photocat.config import Settings  # noqa: E402
from photocat.dependencies import (  # noqa: E402
    get_blob_store,
    get_photo_service,
    get_record_store,
    get_upload_service,
)
from photocat.services.image_transcoder import ImageTranscoder  # noqa: E402
from photocat.services.local_blob_store import LocalBlobStore  # noqa: E402
from photocat.services.photo_service import PhotoService  # noqa: E402
from photocat.services.record_store import RecordStore  # noqa: E402
from photocat.services.upload_service import UploadService  # noqa: E402

# 1 MiB keeps the oversize tests cheap
TEST_MAX_UPLOAD_SIZE = 1024 * 1024
TEST_BOUNDARY = "photocat-test-boundary"


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════


def build_image(
    size: Tuple[int, int] = (1600, 1200),
    fmt: str = "PNG",
    mode: str = "RGB",
    color=(200, 30, 30),
    **save_kwargs,
) -> bytes:
    """Encode a solid-colour image; `color` may include alpha for RGBA."""
    image = Image.new(mode, size, color)
    out = io.BytesIO()
    image.save(out, format=fmt, **save_kwargs)
    return out.getvalue()


def build_multipart(
    parts: Iterable[Tuple[str, Optional[str], Optional[str], bytes]],
    boundary: str = TEST_BOUNDARY,
) -> Tuple[bytes, str]:
    """
    Build a multipart/form-data body.

    Args:
        parts: (field name, filename or None, content-type or None, data)

    Returns:
        (body bytes, value for the Content-Type header)
    """
    chunks = []
    for name, filename, content_type, data in parts:
        disposition = f'form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        head = f"--{boundary}\r\nContent-Disposition: {disposition}\r\n"
        if content_type is not None:
            head += f"Content-Type: {content_type}\r\n"
        chunks.append(head.encode() + b"\r\n" + data + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def make_image():
    return build_image


@pytest.fixture
def multipart():
    return build_multipart


@pytest.fixture
def test_settings(tmp_path, temp_storage):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'photocat.db'}",
        blob_backend="local",
        storage_root=temp_storage,
        public_base_url="http://test",
        max_upload_size=TEST_MAX_UPLOAD_SIZE,
        write_conflict_delay=0,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def record_store(test_settings):
    """RecordStore on a fresh SQLite file with the schema created."""
    store = RecordStore.from_settings(test_settings)
    await store.create_schema()
    yield store
    await store.close()


@pytest.fixture
def local_blob_store(temp_storage):
    return LocalBlobStore(temp_storage, "http://test")


@pytest.fixture
def transcoder():
    return ImageTranscoder()


@pytest.fixture
def upload_service(local_blob_store, transcoder, test_settings):
    return UploadService(
        blob_store=local_blob_store,
        transcoder=transcoder,
        max_upload_size=test_settings.max_upload_size,
        cache_max_age=test_settings.blob_cache_max_age,
        key_prefix=test_settings.blob_key_prefix,
    )


@pytest.fixture
def photo_service(record_store, local_blob_store):
    return PhotoService(
        record_store=record_store,
        blob_store=local_blob_store,
        list_limit=100,
        max_attempts=3,
        retry_delay=0,
    )


@pytest.fixture
def app(test_settings, record_store, local_blob_store, upload_service, photo_service):
    """
    The FastAPI app with every component injected.

    Tests swap a single component by assigning another override, e.g.
        app.dependency_overrides[get_photo_service] = lambda: custom_service
    """
    from photocat.main import create_app

    application = create_app(test_settings)
    application.dependency_overrides[get_record_store] = lambda: record_store
    application.dependency_overrides[get_blob_store] = lambda: local_blob_store
    application.dependency_overrides[get_upload_service] = lambda: upload_service
    application.dependency_overrides[get_photo_service] = lambda: photo_service
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

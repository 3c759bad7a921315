"""
Photocat Backend — Blob Store Interface
=========================================

What:  Abstract contract for the object store that holds uploaded images,
       plus the key generator shared by every implementation.
How:   Concrete stores inherit from BlobStore and implement put() and
       delete(). The app picks one at startup from settings.blob_backend.

Implementations:
    - VercelBlobStore: Vercel Blob REST API (production)
    - LocalBlobStore:  files on local disk served by GET /files/{path}

Contract:
    put(key, data, content_type, cache_max_age) → StoredBlob
        Called exactly once per upload with the final bytes. Either the
        whole object is stored and a public URL returned, or nothing is
        stored and StoreUnavailableError is raised.
    delete(url_or_path) → None
        Deleting something that does not exist is not an error.
        Transport/auth failures raise StoreUnavailableError; callers on the
        record-delete path catch and log it.
"""

import re
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath

# MIME type → file extension for stored objects
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

EXTENSION_CONTENT_TYPES = {ext: ctype for ctype, ext in CONTENT_TYPE_EXTENSIONS.items()}
EXTENSION_CONTENT_TYPES[".jpeg"] = "image/jpeg"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")
MAX_STEM_LENGTH = 64


@dataclass(frozen=True)
class StoredBlob:
    url: str
    pathname: str
    content_type: str


def sanitize_stem(filename: str) -> str:
    """Reduce an uploaded filename to a safe key fragment ('holiday-pic')."""
    stem = PurePosixPath(filename.replace("\\", "/")).stem
    stem = _UNSAFE_CHARS.sub("-", stem).strip("-_")
    return stem[:MAX_STEM_LENGTH] or "image"


def generate_blob_key(filename: str, content_type: str, prefix: str = "") -> str:
    """
    Build a collision-resistant key for a new blob.

    Format: <prefix>/<unix-millis>-<sanitized stem>-<8 hex chars><ext>
    Example: photos/1718000000000-holiday-3fa2b1c4.webp

    The extension follows the content type of the bytes being stored, not the
    original filename. Uniqueness is probabilistic (timestamp + 32 random bits).
    """
    millis = time.time_ns() // 1_000_000
    ext = CONTENT_TYPE_EXTENSIONS.get(content_type, "")
    name = f"{millis}-{sanitize_stem(filename)}-{secrets.token_hex(4)}{ext}"
    return f"{prefix}/{name}" if prefix else name


class BlobStore(ABC):
    """Abstract interface for the public blob store."""

    name = "blob"

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_max_age: int,
    ) -> StoredBlob:
        """
        Store `data` under `key` with public access.

        Returns:
            StoredBlob with the public URL and the pathname inside the store.

        Raises:
            StoreUnavailableError: transport, auth or server failure.
        """
        ...

    @abstractmethod
    async def delete(self, url_or_path: str) -> None:
        """
        Delete a blob by public URL or by pathname.

        Raises:
            StoreUnavailableError: transport, auth or server failure.
        """
        ...

    async def ping(self) -> bool:
        """Lightweight availability check for /health."""
        return True

    async def close(self) -> None:
        """Release network/file resources (called on shutdown)."""
        return None

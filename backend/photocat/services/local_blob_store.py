"""
Photocat Backend — Local Filesystem Blob Store
================================================

What:  BlobStore implementation that writes blobs under a local directory.
How:   Async file I/O via aiofiles; public URLs point at GET /files/{path},
       which serves the same directory.
Who:   Selected with BLOB_BACKEND=local (development, tests, single-box
       deployments without Vercel).

Directory Structure:
    storage/
    └── photos/
        ├── 1718000000000-holiday-3fa2b1c4.webp
        └── 1718000000420-logo-9e01aa7d.svg

Security:
    Keys and URLs are resolved against the storage root; anything that would
    escape it (../, absolute paths) is refused.
"""

import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

import aiofiles

from photocat.exceptions import ClientInputError, StoreUnavailableError
from photocat.services.blob_store import BlobStore, StoredBlob

logger = logging.getLogger(__name__)

FILES_ROUTE_PREFIX = "/files/"


class LocalBlobStore(BlobStore):
    """Blob store on the local filesystem."""

    name = "local"

    def __init__(self, storage_root: str, public_base_url: str):
        """
        Args:
            storage_root:    Directory that holds every blob
            public_base_url: Externally reachable base URL of this server
        """
        self.storage_root = Path(storage_root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalBlobStore initialized with storage_root=%s", self.storage_root)

    def resolve(self, pathname: str) -> Path:
        """Map a pathname to an absolute file path inside the storage root."""
        candidate = (self.storage_root / pathname.lstrip("/")).resolve()
        if self.storage_root not in candidate.parents:
            raise ClientInputError(message="Invalid file path", context={"pathname": pathname})
        return candidate

    def pathname_from(self, url_or_path: str) -> Optional[str]:
        """
        Accept either one of our public URLs or a bare pathname.

        http://localhost:8000/files/photos/a.webp → photos/a.webp
        /files/photos/a.webp                      → photos/a.webp
        photos/a.webp                             → photos/a.webp
        https://elsewhere.example/files/a.webp    → None (not served by us)
        """
        if "://" in url_or_path:
            own_prefix = f"{self.public_base_url}{FILES_ROUTE_PREFIX}"
            if not url_or_path.startswith(own_prefix):
                return None
            path = unquote(url_or_path[len(own_prefix):].split("?", 1)[0].split("#", 1)[0])
        else:
            path = url_or_path
            if path.startswith(FILES_ROUTE_PREFIX):
                path = path[len(FILES_ROUTE_PREFIX):]
        return path.lstrip("/")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_max_age: int,
    ) -> StoredBlob:
        absolute_path = self.resolve(key)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Failed to store blob at %s: %s", absolute_path, str(e))
            raise StoreUnavailableError(
                message="Failed to save uploaded image",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("Blob stored: %s (%d bytes)", key, len(data))
        return StoredBlob(
            url=f"{self.public_base_url}{FILES_ROUTE_PREFIX}{key}",
            pathname=key,
            content_type=content_type,
        )

    async def delete(self, url_or_path: str) -> None:
        pathname = self.pathname_from(url_or_path)
        if pathname is None:
            logger.warning("Not deleting %s: URL is not served by this store", url_or_path)
            return
        if not pathname:
            raise ClientInputError(message="Invalid file path", context={"url": url_or_path})

        path = self.resolve(pathname)
        if path.is_dir():
            raise ClientInputError(message="Invalid file path", context={"url": url_or_path})
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug("Blob already gone: %s", path.name)
            return
        except OSError as e:
            logger.error("Failed to delete blob %s: %s", path, str(e))
            raise StoreUnavailableError(
                message="Failed to delete image",
                context={"path": str(path), "os_error": str(e)},
            ) from e
        logger.info("Blob deleted: %s", path.name)

    async def ping(self) -> bool:
        return self.storage_root.is_dir() and os.access(self.storage_root, os.W_OK)

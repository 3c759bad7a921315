"""
Photocat Backend — Vercel Blob Store
======================================

What:  BlobStore implementation on top of the Vercel Blob REST API.
How:   One shared httpx.AsyncClient, created with the store and closed on
       application shutdown. Each put/delete is a single HTTP call; there is
       no automatic retry.

Wire protocol:
    put:    PUT {api}/?pathname=<key>
            authorization: Bearer <token>
            x-api-version, x-content-type, x-cache-control-max-age,
            x-add-random-suffix: 0   (the key already carries a random suffix)
            → 200 {"url", "downloadUrl", "pathname", "contentType", ...}
    delete: POST {api}/delete  {"urls": ["https://....public.blob.vercel-storage.com/..."]}
            → 200; unknown URLs are ignored by the service
"""

import logging
from typing import Optional

import httpx

from photocat.exceptions import StoreUnavailableError
from photocat.services.blob_store import BlobStore, StoredBlob

logger = logging.getLogger(__name__)


class VercelBlobStore(BlobStore):
    """Public blob storage backed by Vercel Blob."""

    name = "vercel"

    def __init__(
        self,
        token: str,
        api_url: str = "https://blob.vercel-storage.com",
        api_version: str = "7",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            token:       BLOB_READ_WRITE_TOKEN
            api_url:     Blob API endpoint
            api_version: Value of the x-api-version header
            timeout:     Per-request timeout in seconds
            client:      Pre-built client (tests pass one with a MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.api_version = api_version
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)
        logger.info("VercelBlobStore initialized with api_url=%s", self.api_url)

    def _headers(self) -> dict:
        return {
            "authorization": f"Bearer {self._token}",
            "x-api-version": self.api_version,
        }

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_max_age: int,
    ) -> StoredBlob:
        headers = self._headers()
        headers.update({
            "x-content-type": content_type,
            "x-cache-control-max-age": str(cache_max_age),
            "x-add-random-suffix": "0",
        })

        response = await self._request(
            "PUT",
            f"{self.api_url}/",
            params={"pathname": key},
            content=data,
            headers=headers,
            operation="put",
        )

        try:
            body = response.json()
            stored = StoredBlob(
                url=body["url"],
                pathname=body.get("pathname", key),
                content_type=body.get("contentType", content_type),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Unexpected Vercel Blob put response: %s", response.text[:200])
            raise StoreUnavailableError(
                message="Blob storage returned an unexpected response",
                context={"operation": "put", "key": key, "error_type": type(e).__name__},
            ) from e

        logger.info("Blob stored: %s (%d bytes, %s)", stored.pathname, len(data), content_type)
        return stored

    async def delete(self, url_or_path: str) -> None:
        await self._request(
            "POST",
            f"{self.api_url}/delete",
            json={"urls": [url_or_path]},
            headers=self._headers(),
            operation="delete",
            missing_ok=True,
        )
        logger.info("Blob deleted: %s", url_or_path)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        missing_ok: bool = False,
        **kwargs,
    ) -> httpx.Response:
        """
        Issue one API call and translate failures into StoreUnavailableError.

        404 on delete means the blob is already gone and counts as success.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Vercel Blob %s transport error: %s", operation, str(e))
            raise StoreUnavailableError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e

        if missing_ok and response.status_code == 404:
            logger.debug("Vercel Blob %s: object already gone", operation)
            return response

        if response.status_code in (401, 403):
            logger.error("Vercel Blob %s rejected credentials (HTTP %d)", operation, response.status_code)
            raise StoreUnavailableError(
                message="Blob storage rejected the configured credentials",
                context={"operation": operation, "status": response.status_code},
            )

        if response.status_code >= 400:
            logger.error(
                "Vercel Blob %s failed with HTTP %d: %s",
                operation,
                response.status_code,
                response.text[:200],
            )
            raise StoreUnavailableError(
                context={"operation": operation, "status": response.status_code},
            )

        return response

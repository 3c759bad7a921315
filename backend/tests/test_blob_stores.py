"""
Photocat Backend — Blob Store Unit Tests
==========================================

What:  VercelBlobStore wire protocol and error mapping, LocalBlobStore file
       handling, and the key generator.
How:   The Vercel client is given an httpx.AsyncClient on a MockTransport,
       so every request is inspected in-process. The local store writes to
       a temp directory.
"""

import json
import os
import re

import httpx
import pytest

from photocat.exceptions import ClientInputError, StoreUnavailableError
from photocat.services.blob_store import generate_blob_key, sanitize_stem
from photocat.services.local_blob_store import LocalBlobStore
from photocat.services.vercel_blob_store import VercelBlobStore

API = "https://blob.example.test"
PUBLIC_URL = "https://abc.public.blob.vercel-storage.com/photos/1-a-0000abcd.webp"


def make_store(handler) -> VercelBlobStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VercelBlobStore(token="vercel_blob_rw_test", api_url=API, client=client)


# ══════════════════════════════════════════════════════════════════════════
# Key generation
# ══════════════════════════════════════════════════════════════════════════


class TestBlobKeys:
    def test_key_format(self):
        key = generate_blob_key("Summer Trip!.JPG", "image/webp", prefix="photos")

        assert re.fullmatch(r"photos/\d{13}-Summer-Trip-[0-9a-f]{8}\.webp", key)

    def test_extension_follows_content_type(self):
        assert generate_blob_key("logo.png", "image/svg+xml").endswith(".svg")

    def test_keys_are_unique(self):
        keys = {generate_blob_key("a.png", "image/png") for _ in range(50)}
        assert len(keys) == 50

    def test_sanitize_stem_strips_paths(self):
        assert sanitize_stem("../../etc/passwd") == "passwd"
        assert sanitize_stem("C:\\Users\\me\\pic one.png") == "pic-one"

    def test_sanitize_stem_falls_back(self):
        assert sanitize_stem("...") == "image"
        assert sanitize_stem("") == "image"


# ══════════════════════════════════════════════════════════════════════════
# VercelBlobStore
# ══════════════════════════════════════════════════════════════════════════


class TestVercelBlobStorePut:
    @pytest.mark.asyncio
    async def test_put_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={
                "url": PUBLIC_URL,
                "pathname": "photos/1-a-0000abcd.webp",
                "contentType": "image/webp",
            })

        store = make_store(handler)
        stored = await store.put("photos/1-a-0000abcd.webp", b"bytes", "image/webp", 2_592_000)

        request = seen["request"]
        assert request.method == "PUT"
        assert request.url.path == "/"
        assert request.url.params["pathname"] == "photos/1-a-0000abcd.webp"
        assert request.headers["authorization"] == "Bearer vercel_blob_rw_test"
        assert request.headers["x-api-version"] == "7"
        assert request.headers["x-content-type"] == "image/webp"
        assert request.headers["x-cache-control-max-age"] == "2592000"
        assert request.headers["x-add-random-suffix"] == "0"
        assert request.content == b"bytes"

        assert stored.url == PUBLIC_URL
        assert stored.pathname == "photos/1-a-0000abcd.webp"
        assert stored.content_type == "image/webp"
        await store.close()

    @pytest.mark.asyncio
    async def test_put_server_error(self):
        store = make_store(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(StoreUnavailableError):
            await store.put("k.webp", b"x", "image/webp", 60)

    @pytest.mark.asyncio
    async def test_put_bad_credentials(self):
        store = make_store(lambda request: httpx.Response(403, json={"error": "forbidden"}))

        with pytest.raises(StoreUnavailableError, match="credentials"):
            await store.put("k.webp", b"x", "image/webp", 60)

    @pytest.mark.asyncio
    async def test_put_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(handler)

        with pytest.raises(StoreUnavailableError):
            await store.put("k.webp", b"x", "image/webp", 60)

    @pytest.mark.asyncio
    async def test_put_unexpected_body(self):
        store = make_store(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(StoreUnavailableError, match="unexpected response"):
            await store.put("k.webp", b"x", "image/webp", 60)


class TestVercelBlobStoreDelete:
    @pytest.mark.asyncio
    async def test_delete_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={})

        store = make_store(handler)
        await store.delete(PUBLIC_URL)

        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/delete"
        assert json.loads(request.content) == {"urls": [PUBLIC_URL]}
        assert request.headers["authorization"] == "Bearer vercel_blob_rw_test"

    @pytest.mark.asyncio
    async def test_delete_missing_blob_is_ok(self):
        store = make_store(lambda request: httpx.Response(404))

        await store.delete(PUBLIC_URL)

    @pytest.mark.asyncio
    async def test_delete_server_error(self):
        store = make_store(lambda request: httpx.Response(502))

        with pytest.raises(StoreUnavailableError):
            await store.delete(PUBLIC_URL)


# ══════════════════════════════════════════════════════════════════════════
# LocalBlobStore
# ══════════════════════════════════════════════════════════════════════════


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_put_writes_file_and_returns_url(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test/")

        stored = await store.put("photos/a.webp", b"image-bytes", "image/webp", 60)

        assert stored.url == "http://test/files/photos/a.webp"
        assert stored.pathname == "photos/a.webp"
        with open(os.path.join(temp_storage, "photos", "a.webp"), "rb") as f:
            assert f.read() == b"image-bytes"

    @pytest.mark.asyncio
    async def test_delete_by_url(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")
        stored = await store.put("photos/a.webp", b"x", "image/webp", 60)

        await store.delete(stored.url)

        assert not os.path.exists(os.path.join(temp_storage, "photos", "a.webp"))

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")

        await store.delete("http://test/files/photos/never-existed.webp")

    @pytest.mark.asyncio
    async def test_traversal_rejected(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")

        with pytest.raises(ClientInputError, match="Invalid file path"):
            await store.put("../escape.webp", b"x", "image/webp", 60)

        with pytest.raises(ClientInputError):
            await store.delete("http://test/files/../../etc/passwd")

    def test_pathname_from(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")

        assert store.pathname_from("http://test/files/photos/a%20b.webp") == "photos/a b.webp"
        assert store.pathname_from("http://test/files/photos/a.webp?v=2") == "photos/a.webp"
        assert store.pathname_from("/files/photos/a.webp") == "photos/a.webp"
        assert store.pathname_from("photos/a.webp") == "photos/a.webp"
        assert store.pathname_from("https://elsewhere.example.com/files/photos/a.webp") is None

    @pytest.mark.asyncio
    async def test_delete_foreign_host_leaves_local_file(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")
        await store.put("photos/a.webp", b"x", "image/webp", 60)

        await store.delete("https://elsewhere.example.com/files/photos/a.webp")

        assert os.path.exists(os.path.join(temp_storage, "photos", "a.webp"))

    @pytest.mark.asyncio
    async def test_delete_storage_root_rejected(self, temp_storage):
        store = LocalBlobStore(temp_storage, "http://test")
        await store.put("photos/a.webp", b"x", "image/webp", 60)

        for target in ("http://test/files/", "http://test/files/photos/..", "http://test/files/photos/"):
            with pytest.raises(ClientInputError, match="Invalid file path"):
                await store.delete(target)

        assert os.path.exists(os.path.join(temp_storage, "photos", "a.webp"))

    @pytest.mark.asyncio
    async def test_ping(self, temp_storage):
        assert await LocalBlobStore(temp_storage, "http://test").ping() is True

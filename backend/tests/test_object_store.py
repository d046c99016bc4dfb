"""
RecipeShelf Backend: Object Store Unit Tests
=============================================

What:  object_key() path checks, LocalObjectStore, HttpObjectStore.
How:   The local store runs over tmp_path; the HTTP store gets an
       httpx.AsyncClient on a MockTransport, so no network is touched.

Test Strategy:
    ✅ Metadata never opens a byte stream
    ✅ Reads arrive in chunk_size pieces
    ✅ Missing objects → ObjectNotFoundError, traversal → ObjectNotFoundError
    ✅ Transient upstream failures retried, 404 not retried
"""

import httpx
import pytest

from recipeshelf.exceptions import ObjectNotFoundError, UpstreamFailureError
from recipeshelf.services import object_store as object_store_module
from recipeshelf.services.http_store import HttpObjectStore
from recipeshelf.services.local_store import LocalObjectStore
from recipeshelf.services.object_store import close_object_store, get_object_store, object_key


class TestObjectKey:

    @pytest.mark.parametrize("path,expected", [
        ("/objects/uploads/abc.jpg", "uploads/abc.jpg"),
        ("/objects/a", "a"),
        ("/objects/uploads/nested/dir/x.png", "uploads/nested/dir/x.png"),
    ])
    def test_valid_paths(self, path, expected):
        assert object_key(path) == expected

    @pytest.mark.parametrize("path", [
        "/objects/",
        "/other/uploads/abc.jpg",
        "uploads/abc.jpg",
        "/objects/../etc/passwd",
        "/objects/uploads/../../secret",
        "/objects/uploads//abc.jpg",
        "/objects//etc/passwd",
        "/objects/uploads/./abc.jpg",
        "/objects/uploads\\..\\x",
    ])
    def test_rejected_paths(self, path):
        with pytest.raises(ObjectNotFoundError):
            object_key(path)


class TestLocalObjectStore:

    @pytest.mark.asyncio
    async def test_metadata_for_image(self, local_store, put_object, make_image):
        data = make_image(size=(64, 64))
        put_object("photo.jpg", data)

        metadata = await local_store.fetch_metadata("/objects/uploads/photo.jpg")

        assert metadata.content_type == "image/jpeg"
        assert metadata.size_bytes == len(data)
        assert metadata.is_image

    @pytest.mark.asyncio
    async def test_metadata_for_document(self, local_store, put_object):
        put_object("menu.pdf", b"%PDF-1.4 fake")
        metadata = await local_store.fetch_metadata("/objects/uploads/menu.pdf")
        assert metadata.content_type == "application/pdf"
        assert not metadata.is_image

    @pytest.mark.asyncio
    async def test_unknown_extension_is_octet_stream(self, local_store, put_object):
        put_object("blob", b"\x00\x01")
        metadata = await local_store.fetch_metadata("/objects/uploads/blob")
        assert metadata.content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_missing_object(self, local_store):
        with pytest.raises(ObjectNotFoundError, match="Object not found"):
            await local_store.fetch_metadata("/objects/uploads/missing.jpg")

    @pytest.mark.asyncio
    async def test_directory_is_not_an_object(self, local_store):
        with pytest.raises(ObjectNotFoundError):
            await local_store.fetch_metadata("/objects/uploads")

    @pytest.mark.asyncio
    async def test_symlink_out_of_root_rejected(self, local_store, temp_storage, tmp_path):
        secret = tmp_path / "secret.txt"
        secret.write_text("top secret")
        (temp_storage / "uploads" / "link.txt").symlink_to(secret)

        with pytest.raises(ObjectNotFoundError):
            await local_store.fetch_metadata("/objects/uploads/link.txt")

    @pytest.mark.asyncio
    async def test_read_stream_yields_chunks(self, local_store, put_object):
        data = bytes(range(256)) * 100  # 25,600 bytes
        put_object("data.bin", data)

        chunks = [chunk async for chunk in local_store.open_read_stream("/objects/uploads/data.bin")]

        assert b"".join(chunks) == data
        assert len(chunks) == 7
        assert all(len(chunk) <= local_store.chunk_size for chunk in chunks)

    @pytest.mark.asyncio
    async def test_read_stream_missing_object(self, local_store):
        with pytest.raises(ObjectNotFoundError):
            async for _ in local_store.open_read_stream("/objects/uploads/missing.bin"):
                pass

    @pytest.mark.asyncio
    async def test_health_check(self, local_store):
        assert await local_store.health_check() is True


class TestSharedStore:

    @pytest.mark.asyncio
    async def test_store_created_once_and_closed(self):
        await close_object_store()
        try:
            first = get_object_store()
            assert first is get_object_store()
            assert isinstance(first, LocalObjectStore)
        finally:
            await close_object_store()
        assert object_store_module._store is None


def build_http_store(handler, max_attempts=3) -> HttpObjectStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpObjectStore(
        base_url="http://storage.test/recipe-bucket/",
        client=client,
        chunk_size=1000,
        max_attempts=max_attempts,
    )


class TestHttpObjectStore:

    @pytest.mark.asyncio
    async def test_metadata_from_head(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(200, headers={"content-type": "image/png", "content-length": "2048"})

        store = build_http_store(handler)
        metadata = await store.fetch_metadata("/objects/uploads/abc.png")

        assert metadata.content_type == "image/png"
        assert metadata.size_bytes == 2048
        assert seen == [("HEAD", "/recipe-bucket/uploads/abc.png")]
        await store.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("headers", [
        {"content-type": "image/jpeg"},
        {"content-type": "image/jpeg", "content-length": "unknown"},
    ])
    async def test_metadata_without_length(self, headers):
        store = build_http_store(lambda request: httpx.Response(200, headers=headers))

        metadata = await store.fetch_metadata("/objects/uploads/abc.jpg")

        assert metadata.content_type == "image/jpeg"
        assert metadata.size_bytes is None
        await store.close()

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        store = build_http_store(handler)
        with pytest.raises(ObjectNotFoundError):
            await store.fetch_metadata("/objects/uploads/missing.jpg")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_retried_then_succeeds(self):
        responses = iter([
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, headers={"content-type": "image/jpeg", "content-length": "10"}),
        ])

        store = build_http_store(lambda request: next(responses))
        metadata = await store.fetch_metadata("/objects/uploads/a.jpg")

        assert metadata.content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_persistent_failure_gives_up(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        store = build_http_store(handler, max_attempts=3)
        with pytest.raises(UpstreamFailureError, match="Failed to read from object storage"):
            await store.fetch_metadata("/objects/uploads/a.jpg")
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_connection_error_is_upstream_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = build_http_store(handler, max_attempts=2)
        with pytest.raises(UpstreamFailureError):
            await store.fetch_metadata("/objects/uploads/a.jpg")

    @pytest.mark.asyncio
    async def test_read_stream_is_chunked(self):
        data = b"x" * 4500

        def handler(request):
            assert request.method == "GET"
            return httpx.Response(200, content=data)

        store = build_http_store(handler)
        chunks = [chunk async for chunk in store.open_read_stream("/objects/uploads/a.jpg")]

        assert b"".join(chunks) == data
        assert max(len(chunk) for chunk in chunks) <= 1000

    @pytest.mark.asyncio
    async def test_read_stream_not_found(self):
        store = build_http_store(lambda request: httpx.Response(404))
        with pytest.raises(ObjectNotFoundError):
            async for _ in store.open_read_stream("/objects/uploads/a.jpg"):
                pass

    @pytest.mark.asyncio
    async def test_invalid_key_never_reaches_network(self):
        calls = []
        store = build_http_store(lambda request: calls.append(request) or httpx.Response(200))
        with pytest.raises(ObjectNotFoundError):
            await store.fetch_metadata("/objects/../admin")
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [(200, True), (403, True), (503, False)])
    async def test_health_check(self, status, expected):
        store = build_http_store(lambda request: httpx.Response(status))
        assert await store.health_check() is expected

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        store = build_http_store(handler)
        assert await store.health_check() is False

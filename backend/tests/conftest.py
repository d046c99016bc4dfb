"""
RecipeShelf Backend: Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the media test suite.
How:   Environment is set before any recipeshelf import so the settings
       singleton picks up test values.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── temp_storage: storage root with an `uploads/` directory
    ├── local_store: LocalObjectStore over temp_storage
    ├── make_image: Pillow-generated image bytes (any size/format)
    ├── put_object: writes bytes into temp_storage, returns the route path
    ├── counting_store: LocalObjectStore that counts read streams opened
    └── test_client: HTTPX AsyncClient wired to the app with the store overridden
"""

import io
import os
import tempfile

# Before any app import: the settings singleton reads these at import time
os.environ["OBJECT_STORE_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="recipeshelf_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from recipeshelf.services.local_store import LocalObjectStore
from recipeshelf.services.object_store import get_object_store


class CountingStore(LocalObjectStore):
    """LocalObjectStore that records metadata fetches and opened read streams."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.metadata_calls = 0
        self.read_streams_opened = 0
        self.chunks_served = 0

    async def fetch_metadata(self, object_path):
        self.metadata_calls += 1
        return await super().fetch_metadata(object_path)

    async def open_read_stream(self, object_path):
        self.read_streams_opened += 1
        async for chunk in super().open_read_stream(object_path):
            self.chunks_served += 1
            yield chunk


@pytest.fixture
def temp_storage(tmp_path):
    """Storage root with the `uploads/` prefix the frontend writes to."""
    storage_dir = tmp_path / "storage"
    (storage_dir / "uploads").mkdir(parents=True)
    return storage_dir


@pytest.fixture
def local_store(temp_storage):
    return LocalObjectStore(storage_root=str(temp_storage), chunk_size=4096)


@pytest.fixture
def counting_store(temp_storage):
    return CountingStore(storage_root=str(temp_storage), chunk_size=4096)


@pytest.fixture
def make_image():
    """
    Build encoded image bytes.

    The gradient gives the encoder real work and makes crops distinguishable.
    """

    def _make(size=(640, 480), fmt="JPEG", mode="RGB", **save_kwargs) -> bytes:
        red = Image.linear_gradient("L").resize(size)
        green = Image.linear_gradient("L").rotate(90).resize(size)
        blue = Image.radial_gradient("L").resize(size)
        image = Image.merge("RGB", (red, green, blue))
        if mode == "RGBA":
            image.putalpha(128)
        elif mode != "RGB":
            image = image.convert(mode)
        buffer = io.BytesIO()
        image.save(buffer, format=fmt, **save_kwargs)
        return buffer.getvalue()

    return _make


@pytest.fixture
def put_object(temp_storage):
    """Write bytes under uploads/ and return the thumbnail route path."""

    def _put(name: str, content: bytes) -> str:
        path = temp_storage / "uploads" / name
        path.write_bytes(content)
        return f"uploads/{name}"

    return _put


@pytest_asyncio.fixture
async def test_client(counting_store):
    """
    HTTPX AsyncClient over ASGITransport with the object store overridden.

    Usage:
        async def test_thumbnail(test_client, put_object, make_image):
            route = put_object("a.jpg", make_image())
            response = await test_client.get(f"/thumbnails/{route}")
    """
    from recipeshelf.main import app

    app.dependency_overrides[get_object_store] = lambda: counting_store
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()

"""
RecipeShelf Backend: Abstract Object Store Interface
=====================================================

What:  The contract every object store backend implements, plus the
       process-wide store used by the routes.
How:   Concrete stores inherit from ObjectStore and implement metadata,
       streaming reads and a health check. Passthrough serving is shared.
Who:   The thumbnail service and the plain object-serving route.

Object paths:
    Callers always pass entity paths of the form `/objects/<key>`, which is
    what the frontend stores in recipe records. `object_key()` strips the
    prefix and rejects anything that could escape the store.

Implementations:
    - LocalObjectStore: files on disk (development, tests)
    - HttpObjectStore:  remote blob store over HTTP
"""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from fastapi.responses import StreamingResponse

from recipeshelf.config import settings
from recipeshelf.exceptions import ObjectNotFoundError
from recipeshelf.schemas.media import ObjectMetadata

logger = logging.getLogger(__name__)

OBJECTS_PREFIX = "/objects/"


def object_key(object_path: str) -> str:
    """
    Convert an entity path (`/objects/uploads/abc.jpg`) into a store key.

    Raises:
        ObjectNotFoundError: wrong prefix, empty key, or a `..`/absolute segment
    """
    if not object_path.startswith(OBJECTS_PREFIX):
        raise ObjectNotFoundError(object_path)

    key = object_path[len(OBJECTS_PREFIX):]
    parts = key.split("/")
    if not key or any(part in ("", ".", "..") for part in parts) or "\\" in key:
        raise ObjectNotFoundError(object_path, context={"reason": "invalid key"})
    return key


class ObjectStore(ABC):
    """
    Read-only access to stored originals.

    Contract:
        - fetch_metadata() never opens a byte stream
        - open_read_stream() yields chunks as they arrive and releases its
          connection/file handle when closed, exhausted or abandoned
        - Missing objects raise ObjectNotFoundError; everything else the
          backend can throw is wrapped in UpstreamFailureError
    """

    def __init__(self, chunk_size: Optional[int] = None):
        self.chunk_size = chunk_size or settings.stream_chunk_size

    @property
    @abstractmethod
    def backend_name(self) -> str:
        ...

    @abstractmethod
    async def fetch_metadata(self, object_path: str) -> ObjectMetadata:
        """
        Return size and content type of an object.

        Raises:
            ObjectNotFoundError: the object does not exist
            UpstreamFailureError: the store could not be queried
        """
        ...

    @abstractmethod
    def open_read_stream(self, object_path: str) -> AsyncIterator[bytes]:
        """
        Return an async iterator over the object's bytes.

        Nothing is read until the iterator is first advanced.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check used by GET /health."""
        ...

    async def close(self) -> None:
        """Release pooled resources. Called once at shutdown."""
        return None

    def download_passthrough(
        self,
        object_path: str,
        metadata: ObjectMetadata,
        cache_control: str,
    ) -> StreamingResponse:
        """
        Serve an object unmodified.

        Used by GET /objects/... and by the thumbnail endpoint for non-image
        originals. The body is pulled from open_read_stream() one chunk at a
        time as the client accepts it, so a slow client slows the store read.
        Without a known size the body goes out chunked.
        """
        headers = {"Cache-Control": cache_control}
        if metadata.size_bytes is not None:
            headers["Content-Length"] = str(metadata.size_bytes)
        return StreamingResponse(
            self.open_read_stream(object_path),
            media_type=metadata.content_type,
            headers=headers,
        )


# ── Process-wide Store ────────────────────────────────────────────────────
_store: Optional[ObjectStore] = None


def build_object_store() -> ObjectStore:
    """Create the store selected by settings.object_store_backend."""
    if settings.object_store_backend == "http":
        from recipeshelf.services.http_store import HttpObjectStore
        return HttpObjectStore(base_url=settings.object_store_url)

    from recipeshelf.services.local_store import LocalObjectStore
    return LocalObjectStore(storage_root=settings.storage_root)


def get_object_store() -> ObjectStore:
    """
    FastAPI dependency returning the shared store.

    Created lazily so importing the app never touches storage; tests replace
    it through app.dependency_overrides.
    """
    global _store
    if _store is None:
        _store = build_object_store()
        logger.info("Object store initialized: backend=%s", _store.backend_name)
    return _store


async def close_object_store() -> None:
    """Dispose the shared store (lifespan shutdown)."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None

"""
RecipeShelf Backend: Remote (HTTP) Object Store
================================================

What:  ObjectStore backed by a remote blob store reachable over HTTP
       (a GCS/S3 bucket endpoint, or any server that answers HEAD and GET).
How:   HEAD `<base_url>/<key>` for metadata, streamed GET for bytes, both on
       one pooled httpx.AsyncClient.
Who:   Production backend (OBJECT_STORE_BACKEND=http).

Resilience Strategy:
    - Metadata fetches are retried with tenacity (exponential backoff with
      jitter) on UpstreamFailureError only; a 404 is final.
    - Read streams are never retried: by the time a read fails, bytes may
      already be in the decoder or on the wire.
"""

import logging
from typing import AsyncIterator, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from recipeshelf.config import settings
from recipeshelf.exceptions import ObjectNotFoundError, UpstreamFailureError
from recipeshelf.schemas.media import ObjectMetadata
from recipeshelf.services.object_store import ObjectStore, object_key

logger = logging.getLogger(__name__)


def _content_length(response: httpx.Response) -> Optional[int]:
    """Declared object size, or None when the header is absent or garbled."""
    raw = response.headers.get("content-length")
    if raw is None or not raw.strip().isdigit():
        return None
    return int(raw)


class HttpObjectStore(ObjectStore):
    """
    Remote store client.

    Args:
        base_url: Bucket URL; keys are appended as path segments.
        client:   Optional pre-built AsyncClient (tests pass one with a
                  MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(chunk_size=chunk_size)
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.object_store_timeout),
            follow_redirects=True,
        )
        logger.info(
            "HttpObjectStore initialized with base_url=%s, retry(attempts=%d)",
            self.base_url,
            self.max_attempts,
        )

    @property
    def backend_name(self) -> str:
        return "http"

    def _url(self, object_path: str) -> str:
        return f"{self.base_url}/{quote(object_key(object_path))}"

    async def _head(self, object_path: str) -> ObjectMetadata:
        url = self._url(object_path)
        try:
            response = await self._client.head(url)
        except httpx.HTTPError as e:
            raise UpstreamFailureError(
                context={"object_path": object_path, "error": repr(e)},
            ) from e

        if response.status_code == 404:
            raise ObjectNotFoundError(object_path)
        if response.status_code >= 400:
            raise UpstreamFailureError(
                context={"object_path": object_path, "status": response.status_code},
            )

        return ObjectMetadata(
            content_type=response.headers.get("content-type") or "application/octet-stream",
            size_bytes=_content_length(response),
        )

    async def fetch_metadata(self, object_path: str) -> ObjectMetadata:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential_jitter(
                multiplier=settings.retry_min_wait,
                max=settings.retry_max_wait,
                jitter=settings.retry_min_wait,
            ),
            retry=retry_if_exception_type(UpstreamFailureError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._head(object_path)
        raise AssertionError("unreachable")  # pragma: no cover

    async def open_read_stream(self, object_path: str) -> AsyncIterator[bytes]:
        url = self._url(object_path)
        try:
            async with self._client.stream("GET", url) as response:
                if response.status_code == 404:
                    raise ObjectNotFoundError(object_path)
                if response.status_code >= 400:
                    raise UpstreamFailureError(
                        context={"object_path": object_path, "status": response.status_code},
                    )
                async for chunk in response.aiter_bytes(self.chunk_size):
                    yield chunk
        except httpx.HTTPError as e:
            logger.error("Read stream failed for %s: %s", object_path, repr(e))
            raise UpstreamFailureError(
                context={"object_path": object_path, "error": repr(e)},
            ) from e

    async def health_check(self) -> bool:
        try:
            response = await self._client.head(self.base_url)
        except httpx.HTTPError as e:
            logger.warning("Object store health check failed: %s", repr(e))
            return False
        # Buckets commonly answer 403 to anonymous HEAD on the root;
        # reachability is what matters here.
        return response.status_code < 500

    async def close(self) -> None:
        await self._client.aclose()

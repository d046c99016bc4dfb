"""
RecipeShelf Backend: Thumbnail Service (Pipeline Orchestrator)
===============================================================

What:  Runs one thumbnail request from metadata fetch to streamed body and
       decides what the client sees when something fails.
How:   Composes the object store, the size/type guard and the transform
       stages; builds the StreamingResponse once nothing but encoding is left.
Who:   Called by GET /thumbnails/{objectPath}.

Per-request State Machine:
    Received → Validating ──────────────────────────▶ Rejected (400)
                  │  (route, thumbnail_params)
                  ▼
            FetchingMetadata ───────────────────────▶ NotFound (404)
                  │                                 ▶ Rejected (400, too large)
                  ├──▶ Passthrough ──▶ Streaming ──▶ Completed | Aborted
                  └──▶ Transforming ─▶ Streaming ──▶ Completed | Aborted

Header Commit Rule:
    Content-Type and Cache-Control are fixed when the StreamingResponse is
    built, and the ASGI server sends them before the first body chunk.
    Everything that can fail on bad input (metadata, guard, decode, resize)
    therefore runs before the response object exists and surfaces as a JSON
    error. The first encoded chunk is pulled before the response is built
    as well, so an encoder that fails before writing anything is a JSON 500
    too. A failure after that is logged and re-raised so the server drops
    the connection instead of appending garbage to a 200.
"""

import logging
import time
from contextlib import aclosing
from typing import AsyncIterator

from fastapi.responses import StreamingResponse

from recipeshelf.exceptions import RecipeShelfError
from recipeshelf.schemas.media import GuardDecision, ThumbnailRequest, TransformSpec
from recipeshelf.services.image_pipeline import encode_stream, prepare_thumbnail
from recipeshelf.services.object_store import ObjectStore
from recipeshelf.services.source_guard import inspect_source

logger = logging.getLogger(__name__)

# Originals are immutable once uploaded, so derived thumbnails are too.
THUMBNAIL_CACHE_CONTROL = "public, max-age=31536000"


class ThumbnailService:
    """
    Stateless orchestrator; one instance serves every request.

    Error Handling Strategy:
        Application errors keep their type (the status comes from
        ERROR_STATUS_CODES) and are annotated with the object path and
        parameters so the handler's log line is enough to diagnose them.
    """

    async def render(self, request: ThumbnailRequest, store: ObjectStore) -> StreamingResponse:
        """
        Produce the response for a validated request.

        Raises:
            ObjectNotFoundError: 404
            SourceTooLargeError: 400, no read stream opened
            TransformFailureError / UpstreamFailureError: 500, before any header
        """
        started = time.perf_counter()
        try:
            metadata = await store.fetch_metadata(request.object_path)
            decision = inspect_source(metadata, request)

            if decision is GuardDecision.PASSTHROUGH:
                return store.download_passthrough(
                    request.object_path,
                    metadata,
                    cache_control=THUMBNAIL_CACHE_CONTROL,
                )

            spec = TransformSpec.from_request(request)
            thumbnail = await prepare_thumbnail(
                store.open_read_stream(request.object_path),
                spec,
                request.object_path,
            )
            chunks = encode_stream(thumbnail, spec, request.object_path)
            first_chunk = await _first_chunk(chunks)
        except RecipeShelfError as e:
            e.context.setdefault("object_path", request.object_path)
            e.context.setdefault("params", _params(request))
            raise

        logger.info(
            "Thumbnail ready for %s (%dx%d q=%d) from %s byte %s in %.1fms",
            request.object_path,
            spec.target_width,
            spec.target_height,
            spec.quality,
            metadata.size_bytes if metadata.size_bytes is not None else "unknown",
            metadata.content_type,
            (time.perf_counter() - started) * 1000,
        )
        return StreamingResponse(
            self._stream_body(first_chunk, chunks, request),
            media_type=spec.media_type,
            headers={"Cache-Control": THUMBNAIL_CACHE_CONTROL},
        )

    async def _stream_body(
        self,
        first_chunk: bytes,
        chunks: AsyncIterator[bytes],
        request: ThumbnailRequest,
    ) -> AsyncIterator[bytes]:
        """Encoded body; headers are already committed when this runs."""
        sent = 0
        try:
            async with aclosing(chunks):
                if first_chunk:
                    sent += len(first_chunk)
                    yield first_chunk
                async for chunk in chunks:
                    sent += len(chunk)
                    yield chunk
        except Exception:
            logger.error(
                "Aborting thumbnail stream for %s %s after %d bytes",
                request.object_path,
                _params(request),
                sent,
                exc_info=True,
            )
            raise
        logger.debug("Thumbnail stream completed for %s (%d bytes)", request.object_path, sent)


async def _first_chunk(chunks: AsyncIterator[bytes]) -> bytes:
    """
    Pull the first encoded chunk while an error can still become a JSON body.

    An encoder failing before it writes anything raises here.
    """
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return b""


def _params(request: ThumbnailRequest) -> dict:
    return {"w": request.width, "h": request.height, "q": request.quality}


# ── Singleton Instance ────────────────────────────────────────────────────
thumbnail_service = ThumbnailService()

"""
RecipeShelf Backend: Streaming Thumbnail Transform
===================================================

What:  decode → cover-fit resize → JPEG encode, composed as async stages so
       bytes flow from the store read stream to the HTTP response without a
       load-everything-then-process step.
How:   Pillow does the imaging. Decode and resize run on anyio worker
       threads; the encoder runs on its own thread and hands chunks back to
       the event loop through a bounded memory object stream.
Who:   ThumbnailService (services/thumbnail_service.py).

Stage Layout:
    store read stream ──chunks──▶ ImageFile.Parser (decode, worker thread)
                                        │
                                        ▼
                                  fit_cover (worker thread)
                                        │
    response writer ◀──chunks── memory stream ◀── JPEG encoder (thread)

    Decode and fit finish before the first output byte exists (a resize
    needs the whole source), so every decode failure is reported while the
    response can still carry a JSON error. The caller pulls the first
    encoded chunk before committing headers, so an encoder that fails
    before producing anything is reported the same way.

Backpressure:
    The memory stream holds at most `encode_buffer_chunks` chunks. When the
    client reads slowly the encoder thread blocks on its next write; when
    the client disconnects the stream is closed and the encoder thread stops
    at that write.

    The encoder thread is not tied to the task that started it, so the
    stream can be primed in the request handler and drained by the
    response. It still takes a token from anyio's default thread limiter,
    which caps encoders together with the other worker threads.

Memory:
    The Parser decodes incrementally for formats with a single plain tile
    (BMP, TGA, PPM...). Formats with custom loaders (JPEG, PNG, WebP) keep
    the compressed bytes until the last chunk arrives; the byte ceiling
    bounds that buffer even when the store reported no size. JPEG is then
    decoded at the smallest DCT scale that still covers the target box.
"""

import io
import logging
import threading
from contextlib import aclosing
from typing import AsyncIterator, Callable, List, Optional, Tuple

import anyio
from anyio import from_thread, to_thread
from anyio.abc import ObjectSendStream
from anyio.lowlevel import EventLoopToken, current_token
from PIL import Image, ImageFile, ImageOps

from recipeshelf.config import settings
from recipeshelf.exceptions import SourceTooLargeError, TransformFailureError
from recipeshelf.schemas.media import TransformSpec
from recipeshelf.services.source_guard import MAX_SOURCE_BYTES, check_pixel_budget

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)
CENTER = (0.5, 0.5)

# Formats Image.draft() can shrink while decoding
DRAFT_FORMATS = {"JPEG", "MPO"}


# ══════════════════════════════════════════════════════════════════════════
# Decode
# ══════════════════════════════════════════════════════════════════════════

def _finish_decode(parser: ImageFile.Parser, draft_size: Optional[Tuple[int, int]]) -> Image.Image:
    """
    Complete the parse once the source is exhausted.

    The Parser never decodes JPEG incrementally; it only buffers it. Such a
    buffer is decoded here with draft() so the bitmap is only as large as
    draft_size requires.
    """
    header = parser.image
    if (
        draft_size is None
        or parser.decoder is not None
        or header is None
        or header.format not in DRAFT_FORMATS
    ):
        return parser.close()

    data, parser.data = parser.data, None
    image = Image.open(io.BytesIO(data))
    image.draft("RGB", draft_size)
    image.load()
    return image


async def decode_stream(
    source: AsyncIterator[bytes],
    object_path: str,
    max_pixels: Optional[int] = None,
    max_bytes: Optional[int] = None,
    draft_size: Optional[Tuple[int, int]] = None,
) -> Image.Image:
    """
    Feed the source into the decoder one chunk at a time.

    The source iterator is closed on every exit path, which releases the
    upstream file handle or HTTP connection.

    Args:
        max_bytes:  Byte ceiling on the source (defaults to MAX_SOURCE_BYTES)
        draft_size: Smallest size the decoded image must still cover; lets
                    JPEG decode at a reduced scale

    Raises:
        TransformFailureError: the bytes are not a decodable image
        SourceTooLargeError: more than max_bytes arrived, or decoded
            dimensions exceed the pixel ceiling
        UpstreamFailureError: propagated unchanged from the source
    """
    max_pixels = max_pixels or settings.max_source_pixels
    max_bytes = max_bytes or MAX_SOURCE_BYTES
    parser = ImageFile.Parser()
    size_checked = False
    bytes_fed = 0

    async with aclosing(source):
        try:
            async for chunk in source:
                bytes_fed += len(chunk)
                if bytes_fed > max_bytes:
                    logger.warning(
                        "Rejecting %s: read passed the %d byte ceiling",
                        object_path,
                        max_bytes,
                    )
                    raise SourceTooLargeError(
                        context={"object_path": object_path, "bytes_read": bytes_fed, "max_bytes": max_bytes},
                    )
                await to_thread.run_sync(parser.feed, chunk)
                if not size_checked and parser.image is not None:
                    check_pixel_budget(parser.image.size, max_pixels, object_path)
                    size_checked = True
            image = await to_thread.run_sync(_finish_decode, parser, draft_size)
        except Image.DecompressionBombError as e:
            raise SourceTooLargeError(
                message="Image dimensions too large for thumbnail generation",
                context={"object_path": object_path, "error": str(e)},
            ) from e
        except (OSError, SyntaxError, ValueError) as e:
            logger.error("Decode failed for %s after %d bytes: %s", object_path, bytes_fed, str(e))
            raise TransformFailureError(
                context={"object_path": object_path, "stage": "decode", "error": str(e)},
            ) from e

    if not size_checked:
        check_pixel_budget(image.size, max_pixels, object_path)

    logger.debug(
        "Decoded %s: %s %dx%d from %d bytes",
        object_path,
        image.format,
        image.width,
        image.height,
        bytes_fed,
    )
    return image


# ══════════════════════════════════════════════════════════════════════════
# Resize
# ══════════════════════════════════════════════════════════════════════════

def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    """JPEG has no alpha; composite transparent images onto white."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    if has_alpha:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, WHITE)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def fit_cover(image: Image.Image, spec: TransformSpec) -> Image.Image:
    """
    Scale to cover the target box, then centre-crop to it.

    Output is always exactly (target_width, target_height): no letterboxing,
    no distortion. EXIF orientation is applied first (in place) so phone
    photos are cropped the way they are displayed.
    """
    ImageOps.exif_transpose(image, in_place=True)
    rgb = _flatten_to_rgb(image)
    return ImageOps.fit(
        rgb,
        (spec.target_width, spec.target_height),
        method=Image.Resampling.LANCZOS,
        centering=CENTER,
    )


async def prepare_thumbnail(
    source: AsyncIterator[bytes],
    spec: TransformSpec,
    object_path: str,
    max_pixels: Optional[int] = None,
) -> Image.Image:
    """
    Decode and cover-fit. Everything that can fail on bad input fails here.
    """
    # Square box: EXIF rotation may still swap the axes after decoding
    longest_side = max(spec.target_width, spec.target_height)
    image = await decode_stream(
        source,
        object_path,
        max_pixels=max_pixels,
        draft_size=(longest_side, longest_side),
    )
    try:
        return await to_thread.run_sync(fit_cover, image, spec)
    except (OSError, ValueError) as e:
        logger.error("Resize failed for %s: %s", object_path, str(e))
        raise TransformFailureError(
            context={"object_path": object_path, "stage": "resize", "error": str(e)},
        ) from e
    finally:
        image.close()


# ══════════════════════════════════════════════════════════════════════════
# Encode
# ══════════════════════════════════════════════════════════════════════════

class _ChunkWriter:
    """
    File-like sink for Image.save() running on the encoder thread.

    Each write is handed to the event loop and waits for room in the memory
    stream, which is where backpressure reaches the encoder.
    """

    def __init__(self, send_stream: ObjectSendStream, token: EventLoopToken):
        self._send_stream = send_stream
        self.token = token
        self.bytes_written = 0

    def write(self, data) -> int:
        chunk = bytes(data)
        if chunk:
            from_thread.run(self._send_stream.send, chunk, token=self.token)
            self.bytes_written += len(chunk)
        return len(chunk)

    def flush(self) -> None:
        pass


def _encode(image: Image.Image, spec: TransformSpec, writer: _ChunkWriter) -> None:
    image.save(writer, format=spec.output_codec.upper(), quality=spec.quality)


def _run_encoder(
    image: Image.Image,
    spec: TransformSpec,
    writer: _ChunkWriter,
    failures: List[Exception],
    finish: Callable[[], None],
    object_path: str,
) -> None:
    """Encoder thread body. Always closes the image and calls finish()."""
    try:
        _encode(image, spec, writer)
    except anyio.BrokenResourceError:
        logger.info(
            "Client went away mid-stream for %s after %d bytes; encoder stopped",
            object_path,
            writer.bytes_written,
        )
    except (OSError, ValueError) as e:
        failures.append(e)
    finally:
        image.close()
        from_thread.run_sync(finish, token=writer.token)


async def encode_stream(
    image: Image.Image,
    spec: TransformSpec,
    object_path: str = "",
    buffer_chunks: Optional[int] = None,
) -> AsyncIterator[bytes]:
    """
    Encode `image` as JPEG, yielding chunks as the encoder produces them.

    Takes ownership of `image`; the encoder thread closes it. The iterator
    may be advanced from different tasks, so the first chunk can be pulled
    before a response exists. Closing the iterator early stops the encoder
    at its next write.

    Raises:
        TransformFailureError: the encoder failed; if chunks were already
            yielded the caller can only abandon the response
    """
    send_stream, receive_stream = anyio.create_memory_object_stream(
        max_buffer_size=buffer_chunks or settings.encode_buffer_chunks,
    )
    writer = _ChunkWriter(send_stream, current_token())
    limiter = to_thread.current_default_thread_limiter()
    failures: List[Exception] = []

    def finish() -> None:
        send_stream.close()
        limiter.release_on_behalf_of(writer)

    try:
        await limiter.acquire_on_behalf_of(writer)
    except BaseException:
        image.close()
        send_stream.close()
        receive_stream.close()
        raise

    threading.Thread(
        target=_run_encoder,
        args=(image, spec, writer, failures, finish, object_path),
        name="thumbnail-encoder",
        daemon=True,
    ).start()

    async with receive_stream:
        async for chunk in receive_stream:
            yield chunk

    if failures:
        logger.error(
            "Encode failed for %s after %d bytes: %s",
            object_path,
            writer.bytes_written,
            str(failures[0]),
        )
        raise TransformFailureError(
            context={"object_path": object_path, "stage": "encode", "error": str(failures[0])},
        ) from failures[0]

"""
RecipeShelf Backend: Source Size/Type Guard
============================================

What:  Decides, from object metadata alone, whether an original is
       thumbnailed, served as-is, or rejected.
When:  After the metadata fetch, strictly before any read stream is opened.
       A rejection therefore costs one metadata round trip, not a download.

Decision table:
    size_bytes > 15 MiB          → SourceTooLargeError (400)
    size_bytes unknown           → checked again while decoding
    content type not image/*     → PASSTHROUGH (raw bytes, original type)
    otherwise                    → TRANSFORM
"""

import logging
from typing import Tuple

from recipeshelf.exceptions import SourceTooLargeError
from recipeshelf.schemas.media import GuardDecision, ObjectMetadata, ThumbnailRequest

logger = logging.getLogger(__name__)

MAX_SOURCE_BYTES = 15 * 1024 * 1024


def inspect_source(metadata: ObjectMetadata, request: ThumbnailRequest) -> GuardDecision:
    """
    Apply the size ceiling and the image/non-image split.

    A store that cannot report a size (size_bytes is None) passes this check;
    the decoder then enforces the same ceiling on the bytes it is fed.

    Raises:
        SourceTooLargeError: the original exceeds MAX_SOURCE_BYTES
    """
    if metadata.size_bytes is None:
        logger.info("No size reported for %s; enforcing the ceiling while reading", request.object_path)
    elif metadata.size_bytes > MAX_SOURCE_BYTES:
        logger.warning(
            "Rejecting %s: %d bytes exceeds %d byte ceiling",
            request.object_path,
            metadata.size_bytes,
            MAX_SOURCE_BYTES,
        )
        raise SourceTooLargeError(
            context={
                "object_path": request.object_path,
                "size_bytes": metadata.size_bytes,
                "max_bytes": MAX_SOURCE_BYTES,
            },
        )

    if not metadata.is_image:
        logger.info(
            "Passthrough for %s (content_type=%s)",
            request.object_path,
            metadata.content_type,
        )
        return GuardDecision.PASSTHROUGH

    return GuardDecision.TRANSFORM


def check_pixel_budget(size: Tuple[int, int], max_pixels: int, object_path: str) -> None:
    """
    Reject sources whose decoded bitmap would exceed max_pixels.

    Called by the decoder as soon as the image header is known, so the
    check runs before the bulk of the pixel data is decoded.
    """
    width, height = size
    if width * height > max_pixels:
        logger.warning(
            "Rejecting %s: %dx%d exceeds %d pixel ceiling",
            object_path,
            width,
            height,
            max_pixels,
        )
        raise SourceTooLargeError(
            message="Image dimensions too large for thumbnail generation",
            context={"object_path": object_path, "size": [width, height], "max_pixels": max_pixels},
        )

"""
RecipeShelf Backend: Thumbnail Route Handler
=============================================

What:  GET /thumbnails/{objectPath}?w=&h=&q= for resized recipe images.
Who:   Called by <img> tags on the recipe list and card components.

Request Flow:
    1. Raw w/h/q strings are parsed and clamped (no FastAPI int coercion:
       the 400 body has to name the field, and out-of-range values clamp)
    2. ThumbnailService fetches metadata, guards, transforms, streams
    3. Errors before the first byte become {"error": ...} via the
       handlers registered in main.py
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from recipeshelf.schemas.media import ErrorResponse
from recipeshelf.services.object_store import ObjectStore, get_object_store
from recipeshelf.services.thumbnail_params import parse_thumbnail_request
from recipeshelf.services.thumbnail_service import thumbnail_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Thumbnails"])


@router.get(
    "/thumbnails/{object_path:path}",
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "JPEG thumbnail, or the original bytes for non-image objects",
            "content": {"image/jpeg": {}},
        },
        400: {"description": "Invalid parameter or original too large", "model": ErrorResponse},
        404: {"description": "Object not found", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Storage or processing failure", "model": ErrorResponse},
    },
    summary="Serve a resized thumbnail of a stored image",
)
async def get_thumbnail(
    object_path: str,
    w: Optional[str] = Query(default=None, description="Width in px (default 400, clamped to 10-800)"),
    h: Optional[str] = Query(default=None, description="Height in px (default 300, clamped to 10-800)"),
    q: Optional[str] = Query(default=None, description="JPEG quality (default 75, clamped to 10-90)"),
    store: ObjectStore = Depends(get_object_store),
) -> StreamingResponse:
    """
    Cover-fit the stored original to exactly w x h and re-encode as JPEG.

    Responses carry `Cache-Control: public, max-age=31536000`; the same URL
    always yields the same bytes.
    """
    request = parse_thumbnail_request(object_path, w, h, q)
    logger.debug(
        "Thumbnail request %s w=%d h=%d q=%d",
        request.object_path,
        request.width,
        request.height,
        request.quality,
    )
    return await thumbnail_service.render(request, store)

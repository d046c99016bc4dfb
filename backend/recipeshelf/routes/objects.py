"""
RecipeShelf Backend: Object Serving Route
==========================================

What:  GET /objects/{objectPath} serves a stored original unmodified.
Who:   The recipe detail page and image lightbox (full-size images).

Security:
    - object_key() rejects empty keys and `..` segments
    - The local store additionally refuses paths resolving outside its root
"""

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from recipeshelf.config import settings
from recipeshelf.schemas.media import ErrorResponse
from recipeshelf.services.object_store import OBJECTS_PREFIX, ObjectStore, get_object_store

router = APIRouter(tags=["Objects"])


@router.get(
    "/objects/{object_path:path}",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Stored object bytes with their original content type"},
        404: {"description": "Object not found", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Serve a stored object",
)
async def serve_object(
    object_path: str,
    store: ObjectStore = Depends(get_object_store),
) -> StreamingResponse:
    lookup_path = f"{OBJECTS_PREFIX}{object_path}"
    metadata = await store.fetch_metadata(lookup_path)
    return store.download_passthrough(
        lookup_path,
        metadata,
        cache_control=f"public, max-age={settings.object_cache_ttl}",
    )

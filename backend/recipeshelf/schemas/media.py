"""
RecipeShelf Backend: Media Schemas
===================================

What:  Pydantic models for the thumbnail pipeline's transient values and the
       API's response bodies.
How:   Request-scoped values are frozen; they are built once (parse, don't
       validate) and handed down the pipeline unchanged.
Who:   Built by services/thumbnail_params.py and the object stores; returned
       by the routes.

Lifecycle:
    ThumbnailRequest  ← query string + route path, one per HTTP request
    ObjectMetadata    ← one metadata round trip to the object store
    TransformSpec     ← derived from ThumbnailRequest for the transform stage
    All three are discarded when the response completes.
"""

import enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Pipeline Values
# ══════════════════════════════════════════════════════════════════════════


class ThumbnailRequest(BaseModel):
    """
    What:  A validated, clamped thumbnail request.
    Who:   Produced by parse_thumbnail_request(); consumed by ThumbnailService.

    object_path is the store lookup path (`/objects/<key>`), not the raw
    route segment.
    """
    object_path: str = Field(min_length=1, description="Store lookup path of the original")
    width: int = Field(description="Target width in pixels (post-clamp)")
    height: int = Field(description="Target height in pixels (post-clamp)")
    quality: int = Field(description="JPEG quality (post-clamp)")

    model_config = {"frozen": True}


class ObjectMetadata(BaseModel):
    """
    Size and type of a stored object, as reported by the store.

    size_bytes is None when the store does not report a length (a remote
    HEAD without Content-Length).
    """
    content_type: str = Field(default="application/octet-stream")
    size_bytes: Optional[int] = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @property
    def is_image(self) -> bool:
        return self.content_type.lower().startswith("image/")


class TransformSpec(BaseModel):
    """
    What:  Everything the transform stage needs, and nothing else.

    fit_mode, anchor and output_codec have a single legal value each; they
    are carried explicitly so logs and tests can assert on them.
    """
    target_width: int
    target_height: int
    fit_mode: Literal["cover"] = "cover"
    anchor: Literal["center"] = "center"
    output_codec: Literal["jpeg"] = "jpeg"
    quality: int

    model_config = {"frozen": True}

    @classmethod
    def from_request(cls, request: ThumbnailRequest) -> "TransformSpec":
        return cls(
            target_width=request.width,
            target_height=request.height,
            quality=request.quality,
        )

    @property
    def media_type(self) -> str:
        return f"image/{self.output_codec}"


class GuardDecision(str, enum.Enum):
    """Outcome of the size/type guard for a source that was not rejected."""
    TRANSFORM = "transform"
    PASSTHROUGH = "passthrough"


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Error body for every failure detected before the first body byte.

    Example:
        {"error": "Object not found"}
    """
    error: str = Field(description="Human-readable error description")


class HealthResponse(BaseModel):
    """Health check response showing service and object store status."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    object_store: str = Field(description="Object store status: available, unavailable")
    backend: Optional[str] = Field(default=None, description="Configured store backend")
    uptime_seconds: float = Field(description="Seconds since service started")

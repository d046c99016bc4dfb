"""
RecipeShelf Backend: Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure the media endpoints
       can hit, plus the table that maps each one to an HTTP status.
How:   Each exception carries a client-safe message and an optional context
       dict. Handlers registered in main.py look the status up in
       ERROR_STATUS_CODES and return `{"error": message}`.
Who:   Raised by services and middleware; caught by the registered handlers.

Exception Hierarchy:
    RecipeShelfError (base)
    ├── InvalidParameterError    → 400 Bad Request (unparsable w/h/q)
    ├── SourceTooLargeError      → 400 Bad Request (original over the ceiling)
    ├── ObjectNotFoundError      → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── TransformFailureError    → 500 Internal Server Error (decode/encode)
    └── UpstreamFailureError     → 500 Internal Server Error (object store)

Stream position matters for the last two: raised before the first body
byte they become a JSON 500; raised after headers are committed the
connection is dropped instead (see services/thumbnail_service.py).
"""

from typing import Any, Dict, Optional, Type


class RecipeShelfError(Exception):
    """
    Base exception for all RecipeShelf application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidParameterError(RecipeShelfError):
    """
    Raised when a raw query value does not parse as a positive integer.

    Never retried. Raised before any backend I/O so a bad request costs
    nothing but parsing.

    Example response:
        {"error": "Invalid width parameter"}
    """

    def __init__(
        self,
        field: str,
        raw_value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["field"] = field
        if raw_value is not None:
            ctx["raw_value"] = raw_value[:64]
        super().__init__(message=f"Invalid {field} parameter", context=ctx)
        self.field = field


class SourceTooLargeError(RecipeShelfError):
    """
    Raised when the original is too big to thumbnail.

    Usually detected from object metadata (byte size) before any stream is
    opened; a decoded-pixel ceiling catches small files that expand into
    huge bitmaps.
    """

    def __init__(
        self,
        message: str = "File too large for thumbnail generation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ObjectNotFoundError(RecipeShelfError):
    """
    Raised when the requested object does not exist in the store.

    The message is fixed: clients and the frontend match on it.
    """

    def __init__(
        self,
        object_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if object_path:
            ctx["object_path"] = object_path
        super().__init__(message="Object not found", context=ctx)


class TransformFailureError(RecipeShelfError):
    """
    Raised when decoding, resizing or encoding an image fails.

    Recovery:
        - Before the first body byte: 500 with a structured body
        - After headers are sent: the connection is abandoned
    """

    def __init__(
        self,
        message: str = "Failed to process thumbnail",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamFailureError(RecipeShelfError):
    """
    Raised when the object store cannot be reached or a read fails.

    Metadata fetches are retried (see http_store.py); read-stream failures
    are not, since bytes may already have been consumed.
    """

    def __init__(
        self,
        message: str = "Failed to read from object storage",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(RecipeShelfError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    Response includes a Retry-After header for HTTP-compliant clients.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


# ── Status Dispatch Table ─────────────────────────────────────────────────
# One entry per error kind. main.register_exception_handlers() installs a
# handler for each key; lookups walk the MRO so subclasses inherit a status.
ERROR_STATUS_CODES: Dict[Type[RecipeShelfError], int] = {
    InvalidParameterError: 400,
    SourceTooLargeError: 400,
    ObjectNotFoundError: 404,
    RateLimitExceededError: 429,
    TransformFailureError: 500,
    UpstreamFailureError: 500,
    RecipeShelfError: 500,
}


def status_code_for(exc: RecipeShelfError) -> int:
    """Return the HTTP status for an application error (500 if unmapped)."""
    for klass in type(exc).__mro__:
        if klass in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[klass]
    return 500

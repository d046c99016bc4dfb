"""
RecipeShelf Backend: Thumbnail Parameter Validator
===================================================

What:  Turns the raw `w`, `h`, `q` query strings into a ThumbnailRequest.
How:   Strict parse (positive decimal integer), then clamp into safe bounds.
When:  First thing the thumbnail route does, before any backend I/O.

Policy:
    Unparsable or non-positive  → InvalidParameterError (400), stop at once
    Parsed but out of bounds    → clamped, not rejected

    Clamping is the DoS defence: nobody can ask for a 10000px render or
    push encode cost up through quality, but a client sending w=5000 still
    gets a thumbnail.

    The grammar is deliberately stricter than a prefix parse: `12abc` and
    `1.5` are rejected rather than read as 12 and 1. Every accepted value
    means exactly what it says, and a typo in a query string fails loudly
    instead of producing a thumbnail of the wrong size.
"""

import re
from typing import Optional

from recipeshelf.exceptions import InvalidParameterError
from recipeshelf.schemas.media import ThumbnailRequest
from recipeshelf.services.object_store import OBJECTS_PREFIX

# ── Bounds ────────────────────────────────────────────────────────────────
MIN_SIZE = 10
MAX_SIZE = 800
MIN_QUALITY = 10
MAX_QUALITY = 90

DEFAULT_WIDTH = 400
DEFAULT_HEIGHT = 300
DEFAULT_QUALITY = 75

# Optional whitespace, optional "+", digits. No signs, decimals or suffixes.
_POSITIVE_INT_RE = re.compile(r"^\s*\+?(\d+)\s*$")

# Past this many significant digits the value is far beyond any bound; it
# is clamped without converting (int() refuses very long digit strings).
_MAX_SIGNIFICANT_DIGITS = 18


def clamp(value: int, lower: int, upper: int) -> int:
    """Clamp value into [lower, upper]. Idempotent; in-range values pass unchanged."""
    return max(lower, min(upper, value))


def parse_positive_int(raw: str, field: str) -> int:
    """
    Parse a query value as a positive integer.

    Raises:
        InvalidParameterError: the value is not a decimal integer, or is <= 0
    """
    match = _POSITIVE_INT_RE.match(raw)
    if match is None:
        raise InvalidParameterError(field=field, raw_value=raw)

    digits = match.group(1).lstrip("0")
    if not digits:
        raise InvalidParameterError(field=field, raw_value=raw)
    if len(digits) > _MAX_SIGNIFICANT_DIGITS:
        return 10 ** _MAX_SIGNIFICANT_DIGITS
    return int(digits)


def _resolve(raw: Optional[str], field: str, default: int, lower: int, upper: int) -> int:
    if raw is None:
        return default
    return clamp(parse_positive_int(raw, field), lower, upper)


def parse_thumbnail_request(
    route_path: str,
    w: Optional[str] = None,
    h: Optional[str] = None,
    q: Optional[str] = None,
) -> ThumbnailRequest:
    """
    Build a ThumbnailRequest from the route path and raw query values.

    Fields are checked in order (width, height, quality); the first bad one
    fails the request.

    Args:
        route_path: The `:objectPath(*)` segment, e.g. "uploads/abc123".
                    It is looked up in the store as "/objects/uploads/abc123".
        w, h, q: Raw query strings, or None when absent

    Raises:
        InvalidParameterError: empty object path or a malformed w/h/q
    """
    if not route_path:
        raise InvalidParameterError(field="objectPath")

    width = _resolve(w, "width", DEFAULT_WIDTH, MIN_SIZE, MAX_SIZE)
    height = _resolve(h, "height", DEFAULT_HEIGHT, MIN_SIZE, MAX_SIZE)
    quality = _resolve(q, "quality", DEFAULT_QUALITY, MIN_QUALITY, MAX_QUALITY)

    return ThumbnailRequest(
        object_path=f"{OBJECTS_PREFIX}{route_path}",
        width=width,
        height=height,
        quality=quality,
    )

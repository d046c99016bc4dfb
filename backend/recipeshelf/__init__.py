"""
RecipeShelf Backend: Media Package Initializer
===============================================

What: Marks the `recipeshelf` directory as a Python package.
Who:  Imported by uvicorn (`recipeshelf.main:app`), pytest, and every module
      via `from recipeshelf.config import settings`.

Architecture Note:
    The media backend follows the same layered shape as the rest of the app:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Thumbnail Pipeline)   │  ← validate, guard, transform
    ├─────────────────────────────────────┤
    │            Schemas (Data)           │  ← immutable pydantic values
    ├─────────────────────────────────────┤
    │        Object Store (Storage)       │  ← local disk or remote blobs
    └─────────────────────────────────────┘

    Nothing here is persisted; every value lives for one request.
"""

__version__ = "1.0.0"

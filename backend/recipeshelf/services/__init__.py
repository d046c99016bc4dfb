# Services package init
"""
RecipeShelf Backend: Services Layer
====================================

Service Inventory:
    - ObjectStore (abstract): read-only access to stored originals
    - LocalObjectStore / HttpObjectStore: disk and remote-bucket backends
    - thumbnail_params: query string → ThumbnailRequest (parse + clamp)
    - source_guard: size ceiling and image/non-image split
    - image_pipeline: streaming decode → cover-fit → JPEG encode
    - ThumbnailService: orchestrates the above and commits headers
"""

# Middleware package init
"""
RecipeShelf Backend: Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate Limit first: reject abusive clients before any storage I/O
    2. Request ID: correlation ID for every log line of the request
    3. Logging: one access line with status and duration
"""

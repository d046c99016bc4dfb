"""
RecipeShelf Backend: FastAPI Application Factory
=================================================

What:  Creates and configures the media API (objects + thumbnails).
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn recipeshelf.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware Chain:                                   │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐   │
    │  │  Rate Limit  │→│ Req ID   │→│  Logging        │   │
    │  └──────────────┘ └──────────┘ └─────────────────┘   │
    │                                                      │
    │  Routes:                                             │
    │  ┌────────────────┐ ┌──────────────┐ ┌────────────┐  │
    │  │ GET thumbnails │ │ GET objects  │ │ GET health │  │
    │  └────────────────┘ └──────────────┘ └────────────┘  │
    │                                                      │
    │  Exception Handlers (ERROR_STATUS_CODES):            │
    │  ┌────────────────────────────────────────────────┐  │
    │  │ InvalidParameter/TooLarge→400 │ NotFound→404   │  │
    │  │ Transform/Upstream→500        │ other→500      │  │
    │  └────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, config validation, storage directory
    Shutdown: close the object store client (pooled HTTP connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from recipeshelf.config import settings
from recipeshelf.exceptions import (
    ERROR_STATUS_CODES,
    RateLimitExceededError,
    RecipeShelfError,
    status_code_for,
)
from recipeshelf.middleware.logging import RequestLoggingMiddleware
from recipeshelf.middleware.rate_limit import RateLimitMiddleware
from recipeshelf.middleware.request_id import RequestIDMiddleware, request_id_var
from recipeshelf.routes import health, objects, thumbnails
from recipeshelf.services.object_store import close_object_store

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that log every request or every chunk
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run initialization on startup and cleanup on shutdown."""
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("RecipeShelf media backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving /health so the misconfiguration is visible
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    if settings.object_store_backend == "local":
        storage = Path(settings.storage_root)
        storage.mkdir(parents=True, exist_ok=True)
        logger.info("Storage directory: %s", storage.resolve())
    else:
        logger.info("Remote object store: %s", settings.object_store_url or "<unset>")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("RecipeShelf media backend shutting down...")
    await close_object_store()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Install one handler per entry of ERROR_STATUS_CODES plus a catch-all.

    Every body is `{"error": message}`. Context (object path, parameters,
    upstream errors) is logged server-side only.
    """

    async def handle_app_error(request: Request, exc: RecipeShelfError) -> JSONResponse:
        rid = request_id_var.get("")
        status = status_code_for(exc)
        log_level = logging.ERROR if status >= 500 else logging.WARNING
        logger.log(
            log_level,
            "[%s] %s %s -> %d %s: %s | Context: %s",
            rid,
            request.method,
            request.url.path,
            status,
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        headers = {}
        if isinstance(exc, RateLimitExceededError):
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=status,
            content={"error": exc.message},
            headers=headers,
        )

    for exc_type in ERROR_STATUS_CODES:
        app.add_exception_handler(exc_type, handle_app_error)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all: generic 500, stack trace logged server-side only."""
        rid = request_id_var.get("")
        logger.error(
            "[%s] Unexpected error on %s: %s",
            rid,
            request.url.path,
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="RecipeShelf Media API",
        description=(
            "Serves recipe images from object storage and on-demand, "
            "cover-fitted JPEG thumbnails for list and card views."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RateLimit → RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(thumbnails.router)
    app.include_router(objects.router)
    app.include_router(health.router)

    return app


app = create_app()

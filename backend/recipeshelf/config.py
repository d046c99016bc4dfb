"""
RecipeShelf Backend: Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

The thumbnail bounds (10-800 px, quality 10-90) and the 15 MiB source
ceiling are fixed constants in the service modules, not settings: they are
part of the endpoint contract and must not drift between deployments.
"""

from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development. Deployments that
    read originals from a remote blob store MUST set OBJECT_STORE_BACKEND=http
    and OBJECT_STORE_URL.
    """

    # ── Object Store ──────────────────────────────────────────────────────
    # local: originals live under storage_root (development, tests)
    # http:  originals live in a remote blob store reachable over HTTP
    object_store_backend: Literal["local", "http"] = Field(default="local")

    storage_root: str = Field(default="./storage")

    # Base URL of the remote store; object keys are appended to it.
    # Example: https://storage.googleapis.com/recipeshelf-private
    object_store_url: str = Field(default="")

    # Seconds; applies to connect and read on the remote store
    object_store_timeout: float = Field(default=10.0, gt=0, le=120)

    # Size of each chunk pulled from the store read stream.
    # Bounds per-request buffering on the passthrough path.
    stream_chunk_size: int = Field(default=64 * 1024, ge=4 * 1024, le=1024 * 1024)

    # ── Thumbnail Pipeline ────────────────────────────────────────────────
    # Encoded chunks allowed to queue between the encoder thread and the
    # response writer before the encoder blocks.
    encode_buffer_chunks: int = Field(default=2, ge=1, le=64)

    # Decoded pixel ceiling. A small file can still decode to a huge bitmap
    # (decompression bomb); 40M px is roughly an 8000x5000 photo.
    max_source_pixels: int = Field(default=40_000_000, ge=1_000_000, le=200_000_000)

    # ── Caching ───────────────────────────────────────────────────────────
    # max-age for plain object serving (GET /objects/...). Thumbnails always
    # use one year since they are derived from immutable originals.
    object_cache_ttl: int = Field(default=3600, ge=0, le=31_536_000)

    # ── Retry Configuration ───────────────────────────────────────────────
    # Tenacity settings for metadata fetches against the remote store
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.2, ge=0, le=30)
    retry_max_wait: float = Field(default=2.0, ge=0, le=120)

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Per-IP sliding window; thumbnails are CPU-heavy, so keep this on
    rate_limit_requests: int = Field(default=600, ge=10, le=100_000)
    rate_limit_window: int = Field(default=60, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        """
        errors = []
        if self.object_store_backend == "http" and not self.object_store_url:
            errors.append(
                "OBJECT_STORE_URL is not set but OBJECT_STORE_BACKEND=http. "
                "Point it at the bucket that holds recipe images."
            )
        if self.retry_min_wait > self.retry_max_wait:
            errors.append("RETRY_MIN_WAIT must not exceed RETRY_MAX_WAIT.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()

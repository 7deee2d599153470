"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
All tunables are accessed exclusively through this module: never call
``os.getenv`` directly elsewhere in the codebase.

Usage::

    from wikistats.config.settings import get_settings

    settings = get_settings()
    cache_dir = settings.cache_dir
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables and an optional .env file.

    Every field has a working default so the service starts with no
    environment at all; override per deployment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "WikiStats"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode and verbose error responses.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    log_format: str = "auto"
    """Log renderer: ``json``, ``console``, or ``auto`` (console at DEBUG, JSON otherwise)."""

    allowed_origins: list[str] = ["http://localhost:5173"]
    """Origins permitted by the CORS middleware (the chart frontend dev server by default)."""

    default_limit: int = 300
    """``limit`` applied by ``GET /api/revisions`` when the caller sends none."""

    # ------------------------------------------------------------------
    # Upstream (Wikimedia)
    # ------------------------------------------------------------------

    mediawiki_api_url: str = "https://en.wikipedia.org/w/api.php"
    """MediaWiki Action API endpoint used for ``prop=revisions`` queries."""

    rest_api_base_url: str = "https://en.wikipedia.org/api/rest_v1"
    """Wikimedia REST v1 base URL; the page summary lives under ``/page/summary/{title}``."""

    user_agent: str = "WikiStats/1.0 (revision statistics; wikistats@example.org) python-httpx"
    """User-Agent sent on every upstream request, as required by Wikimedia API etiquette."""

    request_timeout_seconds: float = 30.0
    """Per-request httpx timeout.  A timeout counts as a network failure and is retried."""

    max_attempts: int = 3
    """Attempts per upstream call before the adapter gives up."""

    rate_limit_cooldown_seconds: float = 60.0
    """Cooldown applied after HTTP 429 retries are exhausted without a ``Retry-After`` header."""

    # ------------------------------------------------------------------
    # Response cache
    # ------------------------------------------------------------------

    cache_dir: Path = Path("cache") / "mediawiki"
    """Directory holding one ``<sha256>.json`` file per cached upstream page."""

    cache_ttl_seconds: int = 6 * 60 * 60
    """Age after which a cached page is deleted on read and refetched."""

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    metrics_enabled: bool = True
    """Expose Prometheus metrics at ``GET /metrics``."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()

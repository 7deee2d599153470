"""FastAPI dependency injection providers.

``get_revision_fetcher`` builds one :class:`RevisionFetcher` per request
with its own :class:`httpx.AsyncClient`, closed on teardown.  The response
cache and the rate-limit cooldown behind it are shared process-wide.

Tests replace the fetcher through ``app.dependency_overrides``::

    app.dependency_overrides[get_revision_fetcher] = lambda: fake_fetcher
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import AsyncGenerator

from wikistats.config.settings import get_settings
from wikistats.revisions.cache import ResponseCache
from wikistats.revisions.client import WikipediaClient
from wikistats.revisions.engine import RevisionFetcher


@lru_cache
def _response_cache(cache_dir: Path, ttl_seconds: int) -> ResponseCache:
    return ResponseCache(cache_dir, ttl_seconds)


def get_response_cache() -> ResponseCache:
    """Return the shared response cache for the configured directory and TTL."""
    settings = get_settings()
    return _response_cache(settings.cache_dir, settings.cache_ttl_seconds)


async def get_revision_fetcher() -> AsyncGenerator[RevisionFetcher, None]:
    """Yield a per-request fetcher and close its HTTP client on teardown.

    Yields:
        A :class:`RevisionFetcher` wired to the shared cache and cooldown.
    """
    settings = get_settings()
    async with WikipediaClient(settings=settings) as client:
        yield RevisionFetcher(client, get_response_cache())

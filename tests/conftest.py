"""Shared pytest fixtures for WikiStats tests.

Fixture summary
---------------
settings        Settings pointing at fake Wikimedia URLs and a tmp cache dir.
cooldown        A private RateLimitCooldown, so tests never share one.
cache           ResponseCache rooted in ``tmp_path``.
no_sleep        Patches ``asyncio.sleep`` and records the requested delays.

No test touches the network: upstream calls go through respx routes
registered against ``API_URL`` and ``REST_URL``.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from wikistats.config.settings import Settings
from wikistats.core.cooldown import RateLimitCooldown, get_cooldown
from wikistats.revisions.cache import ResponseCache

API_URL = "https://wiki.test/w/api.php"
REST_URL = "https://wiki.test/api/rest_v1"


@pytest.fixture(autouse=True)
def _clear_global_cooldown() -> Iterator[None]:
    """Keep the process-wide cooldown from leaking between tests."""
    get_cooldown().clear()
    yield
    get_cooldown().clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        mediawiki_api_url=API_URL,
        rest_api_base_url=REST_URL,
        cache_dir=tmp_path / "cache",
        max_attempts=3,
        rate_limit_cooldown_seconds=60.0,
    )


@pytest.fixture
def cooldown() -> RateLimitCooldown:
    return RateLimitCooldown()


@pytest.fixture
def cache(settings: Settings) -> ResponseCache:
    return ResponseCache(settings.cache_dir, settings.cache_ttl_seconds)


@pytest.fixture
def no_sleep() -> Iterator[AsyncMock]:
    """Patch ``asyncio.sleep`` so retry tests run instantly.

    The mock's ``await_args_list`` holds the delays the code asked for.
    """
    with patch("asyncio.sleep", new=AsyncMock(return_value=None)) as sleep:
        yield sleep

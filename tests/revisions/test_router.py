"""Route tests for ``/api/revisions``, ``/api/preview`` and the system endpoints.

The app runs in-process through ``httpx.ASGITransport``; the fetcher and the
settings are replaced via ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from wikistats.api.dependencies import get_revision_fetcher
from wikistats.api.main import create_app
from wikistats.config.settings import Settings, get_settings
from wikistats.core.cooldown import get_cooldown
from wikistats.core.exceptions import (
    InvalidArgumentError,
    UpstreamClientError,
    UpstreamProtocolError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
)
from wikistats.revisions.models import ArticlePreview, RevisionPoint, RevisionSeries

_SERIES = RevisionSeries(
    title="Earth",
    points=[
        RevisionPoint(id=1, timestamp=datetime(2020, 1, 1, tzinfo=timezone.utc), size=100, delta=0, user="A"),
        RevisionPoint(id=2, timestamp=datetime(2020, 1, 2, tzinfo=timezone.utc), size=150, delta=50),
    ],
    older_cursor="b2xkZXI",
)


class _StubFetcher:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def fetch_series(self, title, limit, date_from=None, date_to=None, cursor=None):
        self.calls.append(
            {"title": title, "limit": limit, "from": date_from, "to": date_to, "cursor": cursor}
        )
        if self.error is not None:
            raise self.error
        return _SERIES

    async def fetch_preview(self, title):
        self.calls.append({"preview": title})
        if self.error is not None:
            raise self.error
        return ArticlePreview(
            title=title,
            description="Third planet from the Sun",
            thumbnail_url="https://upload.test/earth.jpg",
            page_url="https://en.wikipedia.org/wiki/Earth",
        )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
async def http(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def _use(app: FastAPI, fetcher: _StubFetcher) -> _StubFetcher:
    app.dependency_overrides[get_revision_fetcher] = lambda: fetcher
    return fetcher


# ---------------------------------------------------------------------------
# /api/revisions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRevisionsRoute:
    async def test_series_is_camel_case_json(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher())
        response = await http.get("/api/revisions", params={"title": "Earth"})

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Earth"
        assert body["olderCursor"] == "b2xkZXI"
        assert [p["id"] for p in body["points"]] == [1, 2]
        assert body["points"][1]["delta"] == 50
        assert body["points"][1]["user"] is None
        assert body["points"][0]["timestamp"].startswith("2020-01-01T00:00:00")

    async def test_default_limit(self, app: FastAPI, http: AsyncClient, settings: Settings) -> None:
        fetcher = _use(app, _StubFetcher())
        await http.get("/api/revisions", params={"title": "Earth"})

        assert fetcher.calls[0]["limit"] == settings.default_limit == 300

    async def test_parameters_are_forwarded(self, app: FastAPI, http: AsyncClient) -> None:
        fetcher = _use(app, _StubFetcher())
        await http.get(
            "/api/revisions",
            params={"title": "Earth", "limit": 50, "from": "2020-01-10", "to": "2020-01-12", "cursor": "abc"},
        )

        assert fetcher.calls[0] == {
            "title": "Earth",
            "limit": 50,
            "from": date(2020, 1, 10),
            "to": date(2020, 1, 12),
            "cursor": "abc",
        }

    async def test_missing_title_is_rejected(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher())
        response = await http.get("/api/revisions")
        assert response.status_code == 422

    async def test_malformed_date_is_rejected(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher())
        response = await http.get("/api/revisions", params={"title": "Earth", "from": "2020-13-45"})
        assert response.status_code == 422

    @pytest.mark.parametrize(
        ("error", "expected_status"),
        [
            (InvalidArgumentError("`to` must be the same as or after `from`"), 400),
            (UpstreamClientError("Wikimedia revisions returned HTTP 404", status_code=404), 404),
            (UpstreamUnavailableError("Wikimedia revisions unavailable after 3 attempts"), 503),
            (UpstreamProtocolError("MediaWiki error badtitle: Bad title"), 502),
        ],
    )
    async def test_error_mapping(
        self, app: FastAPI, http: AsyncClient, error: Exception, expected_status: int
    ) -> None:
        _use(app, _StubFetcher(error))
        response = await http.get("/api/revisions", params={"title": "Earth"})

        assert response.status_code == expected_status
        assert str(error) in response.json()["detail"]

    async def test_rate_limit_carries_cooldown(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher(UpstreamRateLimitedError("rate limited", retry_after=12.3)))
        response = await http.get("/api/revisions", params={"title": "Earth"})

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "13"
        assert response.json()["detail"]["cooldownSeconds"] == 13


# ---------------------------------------------------------------------------
# /api/preview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestPreviewRoute:
    async def test_preview_is_camel_case_json(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher())
        response = await http.get("/api/preview", params={"title": "Earth"})

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Earth"
        assert body["thumbnailUrl"] == "https://upload.test/earth.jpg"
        assert body["pageUrl"] == "https://en.wikipedia.org/wiki/Earth"
        assert body["extract"] is None

    async def test_upstream_404_is_mirrored(self, app: FastAPI, http: AsyncClient) -> None:
        _use(app, _StubFetcher(UpstreamClientError("Wikimedia summary returned HTTP 404", 404)))
        response = await http.get("/api/preview", params={"title": "No such page"})

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSystemEndpoints:
    async def test_health(self, http: AsyncClient) -> None:
        response = await http.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "cooldownSeconds": 0}

    async def test_health_reports_active_cooldown(self, http: AsyncClient) -> None:
        get_cooldown().trip(30.0)
        response = await http.get("/health")

        assert 29.0 <= response.json()["cooldownSeconds"] <= 30.0

    async def test_request_id_header(self, http: AsyncClient) -> None:
        response = await http.get("/health")
        assert response.headers.get("X-Request-ID")

    async def test_incoming_request_id_is_echoed(self, http: AsyncClient) -> None:
        response = await http.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_metrics(self, http: AsyncClient) -> None:
        await http.get("/health")
        response = await http.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text

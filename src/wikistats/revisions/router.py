"""FastAPI router for revision series and article previews.

Mounted by :func:`wikistats.api.main.create_app` under ``/api``.

Endpoints:

- ``GET /api/revisions?title=&limit=&from=&to=&cursor=``: a
  :class:`RevisionSeries`; pass ``olderCursor`` back as ``cursor`` to load
  older history.
- ``GET /api/preview?title=``: an :class:`ArticlePreview` card.

Errors are mapped from the WikiStats exception hierarchy: 400 for bad
arguments, the upstream status for upstream 4xx, 503 when Wikimedia stays
unavailable or rate-limited (with ``Retry-After`` and ``cooldownSeconds``),
502 for anything else upstream.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status

from wikistats.api.dependencies import get_revision_fetcher
from wikistats.config.settings import Settings, get_settings
from wikistats.core.exceptions import (
    InvalidArgumentError,
    UpstreamRateLimitedError,
    WikiStatsError,
)
from wikistats.revisions.engine import RevisionFetcher
from wikistats.revisions.models import ArticlePreview, RevisionSeries

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Revisions"])


def _raise_http_error(exc: WikiStatsError, title: str) -> NoReturn:
    """Translate a WikiStats exception into the matching ``HTTPException``."""
    if isinstance(exc, UpstreamRateLimitedError):
        seconds = max(1, math.ceil(exc.retry_after))
        logger.warning("revisions router: rate limited for '%s'; cooldown %ds", title, seconds)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": str(exc), "cooldownSeconds": seconds},
            headers={"Retry-After": str(seconds)},
        ) from exc
    if isinstance(exc, InvalidArgumentError):
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    logger.error("revisions router: upstream failure for '%s': %s", title, exc)
    raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


@router.get(
    "/revisions",
    response_model=RevisionSeries,
    response_model_by_alias=True,
    summary="Revision history of a Wikipedia article",
    description=(
        "Pages backward through the article's edit history, newest first, and "
        "returns up to ``limit`` revisions sorted oldest first with size "
        "deltas. ``from``/``to`` restrict the result to whole UTC days."
    ),
)
async def get_revisions(
    fetcher: Annotated[RevisionFetcher, Depends(get_revision_fetcher)],
    settings: Annotated[Settings, Depends(get_settings)],
    title: str = Query(..., description="Article title, e.g. 'Python (programming language)'."),
    limit: int | None = Query(
        default=None,
        description="Maximum revisions to return (clamped to 1..500000).",
    ),
    date_from: date | None = Query(default=None, alias="from", description="First UTC day (inclusive)."),
    date_to: date | None = Query(default=None, alias="to", description="Last UTC day (inclusive)."),
    cursor: str | None = Query(default=None, description="``olderCursor`` from a previous response."),
) -> RevisionSeries:
    """Fetch a revision series.

    Raises:
        HTTPException 400: Blank title or ``to`` before ``from``.
        HTTPException 4xx: Mirrored upstream client error.
        HTTPException 503: Wikimedia unavailable or rate limited.
        HTTPException 502: Any other upstream failure.
    """
    try:
        series = await fetcher.fetch_series(
            title,
            limit if limit is not None else settings.default_limit,
            date_from=date_from,
            date_to=date_to,
            cursor=cursor,
        )
    except WikiStatsError as exc:
        _raise_http_error(exc, title)

    logger.info(
        "revisions router: returned %d points for '%s'", len(series.points), series.title
    )
    return series


@router.get(
    "/preview",
    response_model=ArticlePreview,
    response_model_by_alias=True,
    summary="Summary card of a Wikipedia article",
)
async def get_preview(
    fetcher: Annotated[RevisionFetcher, Depends(get_revision_fetcher)],
    title: str = Query(..., description="Article title."),
) -> ArticlePreview:
    """Fetch the article's description, extract, thumbnail and canonical URL."""
    try:
        return await fetcher.fetch_preview(title)
    except WikiStatsError as exc:
        _raise_http_error(exc, title)

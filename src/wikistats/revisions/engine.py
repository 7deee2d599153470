"""Revision fetch engine: pages backward through an article's history.

:class:`RevisionFetcher` turns ``(title, limit, from, to, cursor)`` into one
:class:`~wikistats.revisions.models.RevisionSeries`.  Pages are requested
one at a time, newest first, through the response cache and then the
retrying client.  Each page moves the loop through these states:

- ``PAGING``: keep requesting; a continuation token is available.
- ``BOUNDARY_REACHED``: a revision older than the window start was seen;
  everything further back is out of range.
- ``EXHAUSTED``: upstream sent no continuation, an empty page, or the
  same continuation it was asked for.
- ``DONE``: ``limit`` points have been collected.

Points come back sorted oldest first with deltas computed, and
``olderCursor`` resumes the walk further back in time.  It is ``None``
after ``BOUNDARY_REACHED`` or ``EXHAUSTED``.

Any upstream failure propagates; points gathered before it are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any

from wikistats.api.metrics import revision_pages_fetched_total
from wikistats.core.exceptions import InvalidArgumentError, UpstreamProtocolError
from wikistats.revisions.cache import (
    ResponseCache,
    build_cache_key,
    page_continuation,
    page_revisions,
)
from wikistats.revisions.client import WikipediaClient
from wikistats.revisions.config import (
    CONTINUE_SENTINEL,
    MAX_PAGE_SIZE,
    MAX_SERIES_LIMIT,
    MEDIAWIKI_TIMESTAMP_FORMAT,
    WIKIPEDIA_FOUNDED,
)
from wikistats.revisions.cursor import decode_cursor, encode_cursor
from wikistats.revisions.models import (
    ArticlePreview,
    RevisionPoint,
    RevisionSeries,
    with_deltas,
)

logger = logging.getLogger(__name__)


class FetchState(str, Enum):
    """States of the paging loop in :meth:`RevisionFetcher.fetch_series`."""

    PAGING = "paging"
    BOUNDARY_REACHED = "boundary_reached"
    EXHAUSTED = "exhausted"
    DONE = "done"


@dataclass
class RevisionPage:
    """One upstream page of revisions, newest first."""

    revisions: list[dict[str, Any]] = field(default_factory=list)
    continue_token: str | None = None
    continue_param: str | None = None


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive instant bounds of a fetch.  ``None`` leaves a side open."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, ts: datetime) -> bool:
        if self.start is not None and ts < self.start:
            return False
        if self.end is not None and ts > self.end:
            return False
        return True

    @property
    def predates_wikipedia(self) -> bool:
        """``True`` when the window ends before any revision can exist."""
        return self.end is not None and self.end < WIKIPEDIA_FOUNDED


def resolve_window(date_from: date | None, date_to: date | None) -> TimeWindow:
    """Convert calendar-day bounds to UTC instants.

    ``date_from`` becomes the start of that day, but never earlier than
    Wikipedia's founding date.  ``date_to`` becomes 23:59:59 of that day.
    Either bound may be given alone.

    Raises:
        InvalidArgumentError: If both are given and ``date_to`` precedes
            ``date_from``.
    """
    if date_from is not None and date_to is not None and date_to < date_from:
        raise InvalidArgumentError("`to` must be the same as or after `from`")

    start = None
    if date_from is not None:
        start = max(datetime.combine(date_from, time.min, tzinfo=timezone.utc), WIKIPEDIA_FOUNDED)
    end = None
    if date_to is not None:
        end = datetime.combine(date_to, time(23, 59, 59), tzinfo=timezone.utc)
    return TimeWindow(start=start, end=end)


def normalize_title(title: str | None) -> str:
    """Strip *title* and reject blanks.

    Raises:
        InvalidArgumentError: If nothing is left after stripping.
    """
    cleaned = (title or "").strip()
    if not cleaned:
        raise InvalidArgumentError("`title` must not be blank")
    return cleaned


class RevisionFetcher:
    """Builds revision series and article previews for the API and the CLI.

    Args:
        client: Retrying upstream client.
        cache: Response cache for revision pages.  ``None`` disables caching.
    """

    def __init__(self, client: WikipediaClient, cache: ResponseCache | None = None) -> None:
        self._client = client
        self._cache = cache

    async def fetch_series(
        self,
        title: str,
        limit: int,
        date_from: date | None = None,
        date_to: date | None = None,
        cursor: str | None = None,
    ) -> RevisionSeries:
        """Fetch up to *limit* revisions of *title*, walking backward in time.

        Args:
            title: Article title.  Leading and trailing whitespace is ignored.
            limit: Maximum number of points; clamped to ``[1, 500000]``.
            date_from: Earliest calendar day to include (UTC).
            date_to: Latest calendar day to include (UTC).
            cursor: ``olderCursor`` from a previous call.  Unreadable cursors
                restart from the newest revision.

        Returns:
            The series, sorted ascending by timestamp.

        Raises:
            InvalidArgumentError: Blank title or ``date_to`` before ``date_from``.
            UpstreamError: Any upstream failure after retries.
        """
        title = normalize_title(title)
        safe_limit = min(max(limit, 1), MAX_SERIES_LIMIT)
        window = resolve_window(date_from, date_to)
        if window.predates_wikipedia:
            logger.info("revisions: window for '%s' ends before 2001-01-15; nothing to fetch", title)
            return RevisionSeries(title=title)

        resume = decode_cursor(cursor)
        continue_token = resume.continue_token
        continue_param = resume.continue_param

        points: list[RevisionPoint] = []
        seen: set[int] = set()
        older_cursor: str | None = None
        state = FetchState.PAGING

        while state is FetchState.PAGING:
            page = await self._fetch_page(
                title,
                min(MAX_PAGE_SIZE, safe_limit - len(points)),
                window,
                continue_token,
                continue_param,
            )

            next_token = page.continue_token
            next_param = None
            if next_token is None:
                logger.debug("revisions: no rvcontinue for '%s'; history exhausted", title)
            elif page.continue_param is None:
                logger.info("revisions: rvcontinue present but continue missing; using continue=||")
                next_param = CONTINUE_SENTINEL
            else:
                next_param = page.continue_param
            older_cursor = encode_cursor(next_token, next_param)

            if not page.revisions:
                state = FetchState.EXHAUSTED
                break

            for rev in page.revisions:
                if len(points) >= safe_limit:
                    break
                point = _to_point(rev)
                if window.start is not None and point.timestamp < window.start:
                    state = FetchState.BOUNDARY_REACHED
                    break
                if not window.contains(point.timestamp) or point.id in seen:
                    continue
                seen.add(point.id)
                points.append(point)

            if state is FetchState.BOUNDARY_REACHED:
                break
            if next_token is None:
                state = FetchState.EXHAUSTED
            elif next_token == continue_token:
                logger.warning("revisions: rvcontinue for '%s' did not advance; stopping", title)
                state = FetchState.EXHAUSTED
            elif len(points) >= safe_limit:
                state = FetchState.DONE
            else:
                continue_token, continue_param = next_token, next_param

        if state in (FetchState.BOUNDARY_REACHED, FetchState.EXHAUSTED):
            older_cursor = None

        logger.info(
            "revisions: fetched %d points for '%s' (state=%s, more=%s)",
            len(points),
            title,
            state.value,
            older_cursor is not None,
        )
        return RevisionSeries(title=title, points=with_deltas(points), older_cursor=older_cursor)

    async def fetch_preview(self, title: str) -> ArticlePreview:
        """Fetch the article summary card for *title*.  Not cached.

        Raises:
            InvalidArgumentError: Blank title.
            UpstreamError: Any upstream failure after retries.
        """
        title = normalize_title(title)
        body = await self._client.get_summary(title)
        thumbnail = body.get("thumbnail") or {}
        desktop = (body.get("content_urls") or {}).get("desktop") or {}
        return ArticlePreview(
            title=body.get("title") or title,
            description=body.get("description"),
            extract=body.get("extract"),
            thumbnail_url=thumbnail.get("source"),
            page_url=desktop.get("page"),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch_page(
        self,
        title: str,
        limit: int,
        window: TimeWindow,
        continue_token: str | None,
        continue_param: str | None,
    ) -> RevisionPage:
        # A continuation token already pins the position; date bounds are
        # only sent on the first page of a fresh walk.
        fresh = continue_token is None
        rvstart = _format_timestamp(window.end) if fresh else None
        rvend = _format_timestamp(window.start) if fresh else None
        param = None if fresh else continue_param

        key = build_cache_key(title, limit, rvstart, rvend, continue_token, param)
        payload = self._cache.read(key) if self._cache is not None else None
        from_cache = payload is not None
        if payload is None:
            payload = await self._client.get_revisions_page(
                title,
                limit,
                rvstart=rvstart,
                rvend=rvend,
                continue_token=continue_token,
                continue_param=param,
            )
            if self._cache is not None:
                self._cache.write(key, payload)
        revision_pages_fetched_total.labels(source="cache" if from_cache else "upstream").inc()

        revisions = page_revisions(payload)
        next_token, next_param = page_continuation(payload)
        logger.info(
            "revisions: %s for '%s' rvlimit=%d returned=%d rvcontinue=%s continue=%s first=%s last=%s",
            "cache hit" if from_cache else "response",
            title,
            limit,
            len(revisions),
            next_token,
            next_param,
            revisions[0].get("timestamp") if revisions else None,
            revisions[-1].get("timestamp") if revisions else None,
        )
        return RevisionPage(
            revisions=revisions,
            continue_token=next_token,
            continue_param=next_param,
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime(MEDIAWIKI_TIMESTAMP_FORMAT)


def _to_point(rev: dict[str, Any]) -> RevisionPoint:
    """Build a point (delta still 0) from one raw MediaWiki revision.

    Raises:
        UpstreamProtocolError: If ``revid`` or ``timestamp`` is missing or
            malformed, or ``size``/``user`` has the wrong type.
    """
    revid = rev.get("revid")
    raw_ts = rev.get("timestamp")
    if not isinstance(revid, int) or not isinstance(raw_ts, str):
        raise UpstreamProtocolError(f"MediaWiki revision without revid/timestamp: {rev!r}")
    try:
        ts = datetime.fromisoformat(raw_ts.replace("Z", "+00:00"))
    except ValueError as exc:
        raise UpstreamProtocolError(f"MediaWiki revision {revid} has bad timestamp {raw_ts!r}") from exc
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    size = rev.get("size") or 0
    user = rev.get("user")
    if not isinstance(size, int) or not isinstance(user, (str, type(None))):
        raise UpstreamProtocolError(f"MediaWiki revision {revid} has bad size/user: {rev!r}")
    return RevisionPoint(id=revid, timestamp=ts, size=size, user=user)

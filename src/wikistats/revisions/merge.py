"""Combine successive fetches of one article into a single series.

Used for "load older" interactions: the caller keeps the series it already
has and folds in the next page fetched with its ``olderCursor``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from wikistats.revisions.models import RevisionSeries, with_deltas

if TYPE_CHECKING:
    from wikistats.revisions.engine import RevisionFetcher

logger = logging.getLogger(__name__)


def merge_series(existing: RevisionSeries, incoming: RevisionSeries) -> RevisionSeries:
    """Merge *incoming* into *existing* without duplicating revisions.

    Points already in *existing* win over incoming points with the same
    ``id``.  The result is sorted by timestamp with deltas recomputed over
    the merged order, and takes ``title`` and ``older_cursor`` from
    *incoming*, the fresher of the two.
    """
    known = {point.id for point in existing.points}
    added = [point for point in incoming.points if point.id not in known]
    return RevisionSeries(
        title=incoming.title,
        points=with_deltas(existing.points + added),
        older_cursor=incoming.older_cursor,
    )


async def fetch_with_older_pages(
    fetcher: RevisionFetcher,
    title: str,
    limit: int,
    date_from: date | None = None,
    date_to: date | None = None,
    older_pages: int = 0,
) -> RevisionSeries:
    """Fetch a series, then follow ``olderCursor`` up to *older_pages* times.

    Each further batch uses the same *limit* and window and is folded in
    with :func:`merge_series`.  Stops early once no cursor is returned.
    """
    series = await fetcher.fetch_series(title, limit, date_from=date_from, date_to=date_to)
    for batch in range(1, older_pages + 1):
        if series.older_cursor is None:
            break
        older = await fetcher.fetch_series(
            title,
            limit,
            date_from=date_from,
            date_to=date_to,
            cursor=series.older_cursor,
        )
        series = merge_series(series, older)
        logger.info(
            "merge: older batch %d/%d for '%s' added up to %d points (total %d)",
            batch,
            older_pages,
            title,
            len(older.points),
            len(series.points),
        )
    return series

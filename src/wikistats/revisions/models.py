"""Pydantic schemas for revision series and article previews.

These are both the engine's return types and the JSON bodies of the API.
Field names are snake_case in Python and camelCase on the wire
(``olderCursor``, ``thumbnailUrl``, ``pageUrl``), matching what the chart
frontend reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RevisionPoint(_CamelModel):
    """One revision of an article.

    Attributes:
        id: MediaWiki revision ID, unique per article.
        timestamp: When the revision was saved (UTC).
        size: Page size in bytes after the revision.
        delta: ``size`` minus the previous point's ``size`` in chronological
            order; ``0`` for the first point of a series.
        user: Editor name, or ``None`` when hidden or absent.
    """

    id: int
    timestamp: datetime
    size: int
    delta: int = 0
    user: Optional[str] = None


class RevisionSeries(_CamelModel):
    """A chronological run of revisions for one article.

    Attributes:
        title: Article title as requested.
        points: Revisions sorted ascending by ``timestamp``.
        older_cursor: Opaque token that resumes paging further back in time,
            or ``None`` when history is exhausted or the requested window's
            start was reached.
    """

    title: str
    points: list[RevisionPoint] = []
    older_cursor: Optional[str] = None


class ArticlePreview(_CamelModel):
    """Read-only projection of the Wikimedia page summary endpoint."""

    title: str
    description: Optional[str] = None
    extract: Optional[str] = None
    thumbnail_url: Optional[str] = None
    page_url: Optional[str] = None


def with_deltas(points: list[RevisionPoint]) -> list[RevisionPoint]:
    """Return *points* sorted by timestamp with ``delta`` recomputed.

    ``sorted`` is stable, so points sharing a timestamp keep their relative
    order.
    """
    ordered = sorted(points, key=lambda p: p.timestamp)
    result: list[RevisionPoint] = []
    previous_size: int | None = None
    for point in ordered:
        delta = 0 if previous_size is None else point.size - previous_size
        result.append(point.model_copy(update={"delta": delta}))
        previous_size = point.size
    return result

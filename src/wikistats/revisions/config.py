"""Constants for revision fetching.

Upstream-defined values used by
:class:`~wikistats.revisions.engine.RevisionFetcher` and
:class:`~wikistats.revisions.client.WikipediaClient`.  Deployment-specific
values (URLs, timeouts, cache location) live in
:class:`~wikistats.config.settings.Settings` instead.
"""

from __future__ import annotations

from datetime import datetime, timezone

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

MAX_SERIES_LIMIT: int = 500_000
"""Upper clamp for the ``limit`` argument of a single fetch."""

MAX_PAGE_SIZE: int = 500
"""Maximum ``rvlimit`` the MediaWiki API accepts for anonymous clients."""

WIKIPEDIA_FOUNDED: datetime = datetime(2001, 1, 15, tzinfo=timezone.utc)
"""No revision predates Wikipedia's launch; window starts are clamped to it."""

# ---------------------------------------------------------------------------
# Continuation
# ---------------------------------------------------------------------------

CONTINUE_SENTINEL: str = "||"
"""MediaWiki's own placeholder ``continue`` value when no structured data applies.

Substituted whenever an ``rvcontinue`` token arrives without a ``continue``
companion, so that resuming always sends both parameters.
"""

# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------

REVISIONS_BASE_PARAMS: dict[str, str | int] = {
    "action": "query",
    "format": "json",
    "formatversion": 2,
    "prop": "revisions",
    "rvprop": "ids|timestamp|size|user",
    "rvdir": "older",
    "redirects": 1,
}
"""Fixed query parameters of every revisions request.

``rvdir=older`` walks newest to oldest, so ``rvstart`` is the *end* of the
date window and ``rvend`` its *start*.
"""

MEDIAWIKI_TIMESTAMP_FORMAT: str = "%Y-%m-%dT%H:%M:%SZ"
"""Format of ``rvstart``/``rvend`` values."""

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

NETWORK_BACKOFF_SECONDS: float = 0.3
"""Linear backoff step after a failed connection: ``0.3 s * attempt``."""

THROTTLE_BACKOFF_SECONDS: float = 0.5
"""Quadratic backoff step after 429/503 without ``Retry-After``: ``0.5 s * attempt**2``."""

MAX_BACKOFF_SECONDS: float = 5.0
"""Cap on any single sleep between attempts."""

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 503})
"""Statuses that mean "try again later" rather than "this will never work"."""

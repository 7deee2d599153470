"""Revision history fetching for WikiStats.

Pages backward through an article's edit history via the MediaWiki Action
API (``prop=revisions``), reusing raw upstream pages from an on-disk cache,
and turns the result into a chronological :class:`RevisionSeries` of
``{id, timestamp, size, delta, user}`` points ready for charting.

Sub-modules:

- ``config``  : upstream constants (request shape, founding date, retry policy)
- ``models``  : ``RevisionPoint``, ``RevisionSeries``, ``ArticlePreview``
- ``cursor``  : opaque ``olderCursor`` encoding of MediaWiki continuation
- ``cache``   : TTL file cache of raw upstream pages
- ``client``  : httpx adapter with retry/backoff and the shared cooldown
- ``engine``  : ``RevisionFetcher``: the paging loop and preview lookup
- ``merge``   : combine successive series for "load older" interactions
- ``router``  : ``GET /api/revisions`` and ``GET /api/preview``

**No credentials required**: all read endpoints are unauthenticated; only a
descriptive ``User-Agent`` is sent, as Wikimedia policy asks.
"""

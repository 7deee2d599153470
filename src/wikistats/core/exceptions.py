"""Application-wide exception hierarchy for WikiStats.

All custom exceptions subclass ``WikiStatsError``, enabling consistent
error handling and structured logging across the application.  Every class
carries the HTTP ``status_code`` the route layer answers with.

Hierarchy::

    WikiStatsError
    ├── InvalidArgumentError             (400)
    ├── UpstreamError                    (502)
    │   ├── UpstreamClientError          (mirrors the upstream 4xx)
    │   ├── UpstreamProtocolError        (502)
    │   └── UpstreamUnavailableError     (503)
    │       └── UpstreamRateLimitedError (503, retry_after: float)
    └── CacheCorruptError
"""

from __future__ import annotations


class WikiStatsError(Exception):
    """Base class for all WikiStats exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """

    status_code: int = 500


class InvalidArgumentError(WikiStatsError):
    """Raised when a caller supplies an unusable argument (blank title, inverted date range)."""

    status_code = 400


# ---------------------------------------------------------------------------
# Upstream exceptions
# ---------------------------------------------------------------------------


class UpstreamError(WikiStatsError):
    """Raised when a Wikimedia endpoint fails in a way retrying cannot fix.

    Args:
        message: Human-readable description of the failure, usually the
            last error observed by the retrying adapter.
        status_code: HTTP status to answer with.  Defaults to 502.
    """

    status_code = 502

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class UpstreamClientError(UpstreamError):
    """Raised on a definitive 4xx from upstream (e.g. 404).  Never retried.

    The route layer mirrors the upstream status to the caller.
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message, status_code=status_code)


class UpstreamProtocolError(UpstreamError):
    """Raised when a 2xx response body is empty, not JSON, or carries an ``error`` object."""


class UpstreamUnavailableError(UpstreamError):
    """Raised when retries are exhausted on 503s or network failures."""

    status_code = 503


class UpstreamRateLimitedError(UpstreamUnavailableError):
    """Raised when upstream keeps answering 429 or the shared cooldown is active.

    Args:
        message: Human-readable description of the rate limit.
        retry_after: Seconds the caller should wait before trying again.
    """

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Cache exceptions
# ---------------------------------------------------------------------------


class CacheCorruptError(WikiStatsError):
    """Raised internally when a cache file cannot be parsed.

    The cache treats it as a miss; it never reaches a caller.

    Args:
        message: Description of the parse failure.
        path: Path of the offending cache file.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path

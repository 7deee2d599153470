"""httpx adapter for the two Wikimedia endpoints WikiStats reads.

- **MediaWiki Action API** (``/w/api.php``, ``prop=revisions``): one page
  of an article's revision history per call.
- **Wikimedia REST v1** (``/page/summary/{title}``): the article preview.

Every call goes through :meth:`WikipediaClient.execute_with_retry`, which
owns the retry policy:

- network failure (including timeouts): retry after ``0.3 s * attempt``
- HTTP 429 / 503: retry after ``Retry-After`` when sent, otherwise
  ``0.5 s * attempt**2``; never more than 5 s per sleep
- any other 4xx: :class:`UpstreamClientError` with that status, no retry
- any other 5xx: :class:`UpstreamError` (502), no retry

When the attempts run out on 429s, the process-wide
:class:`~wikistats.core.cooldown.RateLimitCooldown` is tripped and every
later call fails fast with :class:`UpstreamRateLimitedError` until it
expires.
"""

from __future__ import annotations

import asyncio
import logging
import urllib.parse
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable

import httpx

from wikistats.api.metrics import upstream_requests_total, upstream_retries_total
from wikistats.config.settings import Settings, get_settings
from wikistats.core.cooldown import RateLimitCooldown, get_cooldown
from wikistats.core.exceptions import (
    UpstreamClientError,
    UpstreamError,
    UpstreamProtocolError,
    UpstreamRateLimitedError,
    UpstreamUnavailableError,
)
from wikistats.revisions.cache import MalformedPageError, check_page
from wikistats.revisions.config import (
    MAX_BACKOFF_SECONDS,
    NETWORK_BACKOFF_SECONDS,
    RETRYABLE_STATUS_CODES,
    REVISIONS_BASE_PARAMS,
    THROTTLE_BACKOFF_SECONDS,
)

logger = logging.getLogger(__name__)

# Upstream error bodies are echoed into messages; keep them short.
_BODY_SNIPPET_CHARS: int = 200


class WikipediaClient:
    """Retrying async client for the MediaWiki and REST summary endpoints.

    Use as an async context manager, or call :meth:`aclose` when done::

        async with WikipediaClient() as client:
            payload = await client.get_revisions_page("Python (programming language)", 50)

    Args:
        settings: Application settings.  Defaults to :func:`get_settings`.
        http_client: Optional injected :class:`httpx.AsyncClient`.  An
            injected client is not closed by this class.
        cooldown: Rate-limit cooldown to honour and trip.  Defaults to the
            process-wide instance.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        cooldown: RateLimitCooldown | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_client = http_client is None
        self._http = http_client or self._build_http_client()
        self._cooldown = cooldown or get_cooldown()
        self.max_attempts = max(1, self._settings.max_attempts)

    async def __aenter__(self) -> WikipediaClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Endpoint calls
    # ------------------------------------------------------------------

    async def get_revisions_page(
        self,
        title: str,
        limit: int,
        rvstart: str | None = None,
        rvend: str | None = None,
        continue_token: str | None = None,
        continue_param: str | None = None,
    ) -> dict[str, Any]:
        """Fetch one page of revisions, newest first.

        Args:
            title: Article title.
            limit: ``rvlimit``; at most 500 for anonymous clients.
            rvstart: Newest timestamp to include (the window *end*).
            rvend: Oldest timestamp to include (the window *start*).
            continue_token: ``rvcontinue`` from the previous page.
            continue_param: ``continue`` from the previous page.

        Returns:
            The decoded MediaWiki response.

        Raises:
            UpstreamProtocolError: If the body is not a JSON object, carries
                an ``error`` object, or does not have the revisions page shape.
            UpstreamError: On any failure :meth:`execute_with_retry` raises.
        """
        params: dict[str, Any] = dict(REVISIONS_BASE_PARAMS)
        params["titles"] = title
        params["rvlimit"] = limit
        optional = {
            "rvstart": rvstart,
            "rvend": rvend,
            "rvcontinue": continue_token,
            "continue": continue_param,
        }
        params.update({k: v for k, v in optional.items() if v is not None})

        logger.info(
            "mediawiki: requesting revisions for '%s' rvlimit=%d rvstart=%s rvend=%s rvcontinue=%s",
            title,
            limit,
            rvstart,
            rvend,
            continue_token,
        )
        url = self._settings.mediawiki_api_url
        response = await self.execute_with_retry(
            lambda: self._http.get(url, params=params),
            endpoint="revisions",
        )
        payload = _json_object(response, "revisions")

        error = payload.get("error")
        if error:
            code = error.get("code", "unknown") if isinstance(error, dict) else "unknown"
            info = error.get("info", "") if isinstance(error, dict) else str(error)
            raise UpstreamProtocolError(f"MediaWiki error {code}: {info}")
        try:
            check_page(payload)
        except MalformedPageError as exc:
            raise UpstreamProtocolError(f"MediaWiki returned a malformed revisions page: {exc}") from exc
        return payload

    async def get_summary(self, title: str) -> dict[str, Any]:
        """Fetch the REST v1 page summary for *title*.

        Spaces become underscores and the title is percent-encoded as one
        path segment, so titles containing ``/`` work.

        Raises:
            UpstreamProtocolError: If the body is not a JSON object.
            UpstreamError: On any failure :meth:`execute_with_retry` raises.
        """
        segment = urllib.parse.quote(title.replace(" ", "_"), safe="")
        url = f"{self._settings.rest_api_base_url.rstrip('/')}/page/summary/{segment}"
        logger.info("mediawiki: requesting summary for '%s'", title)
        response = await self.execute_with_retry(
            lambda: self._http.get(url),
            endpoint="summary",
        )
        return _json_object(response, "summary")

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    async def execute_with_retry(
        self,
        call: Callable[[], Awaitable[httpx.Response]],
        endpoint: str = "revisions",
    ) -> httpx.Response:
        """Run *call* until it returns a 2xx response or the policy gives up.

        Args:
            call: Zero-argument coroutine factory issuing one HTTP request.
            endpoint: Label used in logs and metrics.

        Returns:
            The first successful response.

        Raises:
            UpstreamRateLimitedError: While the cooldown is active, or when
                every attempt was answered with 429.
            UpstreamUnavailableError: When the attempts ran out on 503s or
                network failures.  Carries the last error message.
            UpstreamClientError: On a 4xx other than 429.
            UpstreamError: On a 5xx other than 503.
        """
        last_error = "no attempt made"
        last_status: int | None = None
        last_retry_after: float | None = None

        for attempt in range(1, self.max_attempts + 1):
            remaining = self._cooldown.remaining()
            if remaining > 0:
                upstream_requests_total.labels(endpoint=endpoint, outcome="cooldown").inc()
                raise UpstreamRateLimitedError(
                    f"Wikimedia rate limit cooldown active for another {remaining:.0f}s",
                    retry_after=remaining,
                )

            try:
                response = await call()
            except httpx.RequestError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                last_status = None
                upstream_requests_total.labels(endpoint=endpoint, outcome="network_error").inc()
                if attempt < self.max_attempts:
                    delay = NETWORK_BACKOFF_SECONDS * attempt
                    await self._backoff(endpoint, attempt, delay, "network_error", last_error)
                continue

            status = response.status_code
            if 200 <= status < 300:
                upstream_requests_total.labels(endpoint=endpoint, outcome="ok").inc()
                return response

            if status in RETRYABLE_STATUS_CODES:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                last_error = f"HTTP {status} from {endpoint}"
                last_status = status
                if status == 429:
                    last_retry_after = retry_after
                outcome = "rate_limited" if status == 429 else "unavailable"
                upstream_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()
                if attempt < self.max_attempts:
                    if retry_after is not None:
                        delay = retry_after
                    else:
                        delay = THROTTLE_BACKOFF_SECONDS * attempt**2
                    await self._backoff(
                        endpoint, attempt, min(delay, MAX_BACKOFF_SECONDS), str(status), last_error
                    )
                continue

            snippet = response.text[:_BODY_SNIPPET_CHARS]
            if 400 <= status < 500:
                upstream_requests_total.labels(endpoint=endpoint, outcome="client_error").inc()
                raise UpstreamClientError(
                    f"Wikimedia {endpoint} returned HTTP {status}: {snippet}",
                    status_code=status,
                )
            upstream_requests_total.labels(endpoint=endpoint, outcome="server_error").inc()
            raise UpstreamError(f"Wikimedia {endpoint} returned HTTP {status}: {snippet}")

        if last_status == 429:
            seconds = (
                last_retry_after
                if last_retry_after is not None
                else self._settings.rate_limit_cooldown_seconds
            )
            if self._cooldown.trip(seconds):
                logger.warning(
                    "mediawiki: rate limited %d times in a row; cooling down for %.1fs",
                    self.max_attempts,
                    seconds,
                )
            raise UpstreamRateLimitedError(
                f"Wikimedia rate limit persisted after {self.max_attempts} attempts: {last_error}",
                retry_after=self._cooldown.remaining() or seconds,
            )

        raise UpstreamUnavailableError(
            f"Wikimedia {endpoint} unavailable after {self.max_attempts} attempts: {last_error}"
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _backoff(
        self,
        endpoint: str,
        attempt: int,
        delay: float,
        reason: str,
        error: str,
    ) -> None:
        upstream_retries_total.labels(reason=reason).inc()
        logger.warning(
            "mediawiki: %s attempt %d/%d failed (%s); retrying in %.2fs",
            endpoint,
            attempt,
            self.max_attempts,
            error,
            delay,
        )
        await asyncio.sleep(delay)

    def _build_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds,
            headers={"User-Agent": self._settings.user_agent},
            follow_redirects=True,
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header (delta-seconds or HTTP-date) to seconds.

    Returns:
        Non-negative seconds, or ``None`` when absent or unparseable.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug("mediawiki: ignoring unparseable Retry-After %r", value)
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(tz=timezone.utc)).total_seconds())


def _json_object(response: httpx.Response, endpoint: str) -> dict[str, Any]:
    """Decode a 2xx body that must be a JSON object."""
    if not response.content.strip():
        raise UpstreamProtocolError(f"Wikimedia {endpoint} returned an empty body")
    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamProtocolError(f"Wikimedia {endpoint} returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise UpstreamProtocolError(
            f"Wikimedia {endpoint} returned {type(payload).__name__}, expected an object"
        )
    return payload

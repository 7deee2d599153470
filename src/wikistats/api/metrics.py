"""Prometheus metrics for WikiStats.

All metrics are module-level singletons registered on the default
``REGISTRY``.  They are safe to import from multiple modules because
prometheus_client deduplicates by metric name.

Metrics defined here:

  http_requests_total{method, path, status}
      Counter: HTTP requests handled by the FastAPI application.

  http_request_duration_seconds{method, path}
      Histogram: HTTP request latency in seconds.

  upstream_requests_total{endpoint, outcome}
      Counter: individual upstream HTTP attempts made by the adapter.

  upstream_retries_total{reason}
      Counter: attempts that were followed by a backoff sleep.

  cache_lookups_total{result}
      Counter: response cache reads by result.

  revision_pages_fetched_total{source}
      Counter: revision pages consumed by the fetch engine.

Usage::

    from wikistats.api.metrics import cache_lookups_total
    cache_lookups_total.labels(result="hit").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by middleware in main.py)
# ---------------------------------------------------------------------------

http_requests_total: Counter = Counter(
    "http_requests_total",
    "HTTP requests handled by the FastAPI application.",
    labelnames=["method", "path", "status"],
)
"""Counter incremented after every HTTP response.

Labels:
  method: HTTP method (GET, POST, ...)
  path:   URL path
  status: HTTP response status code as string (e.g. '200', '503')
"""

http_request_duration_seconds: Histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds.",
    labelnames=["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)
"""Histogram of HTTP request durations.  Long buckets cover multi-page fetches."""

# ---------------------------------------------------------------------------
# Upstream metrics (populated in revisions/client.py)
# ---------------------------------------------------------------------------

upstream_requests_total: Counter = Counter(
    "wikistats_upstream_requests_total",
    "Upstream HTTP attempts by endpoint and outcome.",
    labelnames=["endpoint", "outcome"],
)
"""Counter incremented once per attempt, including retried ones.

Labels:
  endpoint: 'revisions' or 'summary'
  outcome:  'ok', 'network_error', 'rate_limited', 'unavailable',
            'client_error', 'server_error', 'cooldown'
"""

upstream_retries_total: Counter = Counter(
    "wikistats_upstream_retries_total",
    "Upstream attempts followed by a backoff sleep, by reason.",
    labelnames=["reason"],
)
"""Labels:
  reason: 'network_error' or the retried HTTP status ('429', '503')
"""

# ---------------------------------------------------------------------------
# Cache and engine metrics
# ---------------------------------------------------------------------------

cache_lookups_total: Counter = Counter(
    "wikistats_cache_lookups_total",
    "Response cache reads by result.",
    labelnames=["result"],
)
"""Labels:
  result: one of hit, miss, expired, corrupt, empty_terminal
"""

revision_pages_fetched_total: Counter = Counter(
    "wikistats_revision_pages_fetched_total",
    "Revision pages consumed by the fetch engine.",
    labelnames=["source"],
)
"""Labels:
  source: 'cache' or 'upstream'
"""


# ---------------------------------------------------------------------------
# Response helper
# ---------------------------------------------------------------------------


def get_metrics_response() -> tuple[bytes, str]:
    """Generate a Prometheus text-format metrics response.

    Returns:
        A tuple of (body_bytes, content_type_string) suitable for constructing
        a FastAPI ``Response`` object.
    """
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # noqa: PLC0415

    return generate_latest(), CONTENT_TYPE_LATEST

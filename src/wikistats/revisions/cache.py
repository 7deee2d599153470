"""On-disk TTL cache of raw MediaWiki revision pages.

One JSON file per request, named after the SHA-256 of the normalised
request parameters::

    <cache_dir>/<sha256-hex>.json  ->  {"storedAt": <epoch ms>, "payload": {...}}

The cache is an optimisation only.  Every failure (missing directory,
unreadable file, bad JSON, a payload that is not a revisions page, full
disk) degrades to a miss or a skipped write; nothing here raises to the
caller.

Empty terminal pages (no revisions and no ``rvcontinue``) are neither
written nor served.  A transient or partial empty answer would otherwise
look like "no history" for the whole TTL.  The cost is that a genuinely
empty page is re-requested every time.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable

from wikistats.api.metrics import cache_lookups_total
from wikistats.core.exceptions import CacheCorruptError

logger = logging.getLogger(__name__)


def build_cache_key(
    title: str,
    limit: int,
    rvstart: str | None,
    rvend: str | None,
    continue_token: str | None,
    continue_param: str | None,
) -> str:
    """Return the hex digest identifying one upstream page request.

    Identical parameters give identical keys across processes and restarts.
    """
    raw = (
        f"title={title}|limit={limit}|rvstart={rvstart}|rvend={rvend}"
        f"|rvcontinue={continue_token}|continue={continue_param}"
    )
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class MalformedPageError(ValueError):
    """Raised by the payload helpers when a response does not have the MediaWiki shape."""


def page_revisions(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the revision list of the first page in a MediaWiki response.

    ``formatversion=2`` returns ``pages`` as a list; version 1 keys it by
    page ID.  Both are accepted.  A ``missing`` page has no revisions.

    Raises:
        MalformedPageError: If ``query``, a page or a revision is not an
            object, or ``pages``/``revisions`` is not a collection.
    """
    query = payload.get("query")
    if query is None:
        return []
    if not isinstance(query, dict):
        raise MalformedPageError("`query` is not an object")
    pages = query.get("pages")
    if not pages:
        return []
    if isinstance(pages, dict):
        pages = list(pages.values())
    if not isinstance(pages, list):
        raise MalformedPageError("`query.pages` is neither a list nor an object")
    if not isinstance(pages[0], dict):
        raise MalformedPageError("first page is not an object")
    revisions = pages[0].get("revisions")
    if revisions is None:
        return []
    if not isinstance(revisions, list):
        raise MalformedPageError("`revisions` is not a list")
    if not all(isinstance(rev, dict) for rev in revisions):
        raise MalformedPageError("revision entry is not an object")
    return revisions


def page_continuation(payload: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return ``(rvcontinue, continue)`` from a MediaWiki response; blanks become ``None``.

    Raises:
        MalformedPageError: If ``continue`` is not an object or its values
            are not strings.
    """
    block = payload.get("continue")
    if block is None:
        return None, None
    if not isinstance(block, dict):
        raise MalformedPageError("`continue` is not an object")
    token = block.get("rvcontinue") or None
    param = block.get("continue") or None
    if not isinstance(token, (str, type(None))) or not isinstance(param, (str, type(None))):
        raise MalformedPageError("continuation values are not strings")
    return token, param


def check_page(payload: dict[str, Any]) -> None:
    """Raise :class:`MalformedPageError` unless *payload* reads as a revisions page."""
    page_revisions(payload)
    page_continuation(payload)


def is_empty_terminal(payload: dict[str, Any]) -> bool:
    """Return ``True`` for a page with no revisions and no continuation."""
    token, _ = page_continuation(payload)
    return not page_revisions(payload) and not token


class ResponseCache:
    """TTL file cache keyed by :func:`build_cache_key`.

    Args:
        cache_dir: Directory for cache files.  Created lazily.
        ttl_seconds: Maximum entry age; older entries are deleted on read.
        clock: Source of wall-clock seconds (``time.time``).  Injected by tests.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl_millis = int(ttl_seconds * 1000)
        self._clock = clock
        self._dir_ready = False

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def read(self, key: str) -> dict[str, Any] | None:
        """Return the cached payload for *key*, or ``None`` on any kind of miss.

        Expired entries are deleted as a side effect.
        """
        path = self.path_for(key)
        if not path.exists():
            cache_lookups_total.labels(result="miss").inc()
            return None

        try:
            stored_at, payload = self._load(path)
        except (OSError, CacheCorruptError) as exc:
            logger.warning("cache: unreadable entry %s: %s", path.name, exc)
            cache_lookups_total.labels(result="corrupt").inc()
            return None

        if self._now_millis() - stored_at > self.ttl_millis:
            logger.debug("cache: entry %s expired", path.name)
            cache_lookups_total.labels(result="expired").inc()
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("cache: could not delete expired entry %s: %s", path.name, exc)
            return None

        if is_empty_terminal(payload):
            cache_lookups_total.labels(result="empty_terminal").inc()
            return None

        cache_lookups_total.labels(result="hit").inc()
        return payload

    def write(self, key: str, payload: dict[str, Any]) -> None:
        """Store *payload* under *key*.  Best-effort: I/O errors are logged and dropped.

        The file is written to a temporary name and renamed into place, so a
        concurrent reader sees either the old entry or the new one.
        """
        try:
            if is_empty_terminal(payload):
                return
        except MalformedPageError as exc:
            logger.warning("cache: not storing malformed page %s: %s", key, exc)
            return

        entry = {"storedAt": self._now_millis(), "payload": payload}
        try:
            self._ensure_dir()
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(entry, fh, ensure_ascii=False)
                os.replace(tmp_name, self.path_for(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("cache: could not write entry %s: %s", key, exc)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load(self, path: Path) -> tuple[int, dict[str, Any]]:
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CacheCorruptError(f"invalid JSON: {exc}", path=str(path)) from exc

        if not isinstance(entry, dict):
            raise CacheCorruptError("entry is not an object", path=str(path))
        stored_at = entry.get("storedAt")
        payload = entry.get("payload")
        if not isinstance(stored_at, int) or isinstance(stored_at, bool):
            raise CacheCorruptError("missing or invalid storedAt", path=str(path))
        if not isinstance(payload, dict):
            raise CacheCorruptError("missing or invalid payload", path=str(path))
        try:
            check_page(payload)
        except MalformedPageError as exc:
            raise CacheCorruptError(f"payload is not a revisions page: {exc}", path=str(path)) from exc
        return stored_at, payload

    def _ensure_dir(self) -> None:
        if not self._dir_ready:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info("cache: using cache dir %s", self.cache_dir.resolve())
            self._dir_ready = True

    def _now_millis(self) -> int:
        return int(self._clock() * 1000)

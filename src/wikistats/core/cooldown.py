"""Process-wide cooldown shared by every upstream call.

Once Wikimedia has rate-limited us past the adapter's retry budget, every
further fetch in this process is short-circuited until the cooldown
expires.  The deadline is a monotonic timestamp guarded by a lock so that
concurrent requests (thread-pool or event loop) see one consistent value.

Typical usage::

    cooldown = get_cooldown()
    if cooldown.remaining() > 0:
        raise UpstreamRateLimitedError(..., retry_after=cooldown.remaining())
    ...
    cooldown.trip(retry_after)
"""

from __future__ import annotations

import threading
import time
from typing import Callable


class RateLimitCooldown:
    """Monotonic deadline with compare-and-set updates.

    Args:
        clock: Source of monotonic seconds.  Injected by tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._until = 0.0

    def remaining(self) -> float:
        """Return the seconds left on the cooldown, or ``0.0`` when inactive."""
        with self._lock:
            return max(0.0, self._until - self._clock())

    def trip(self, seconds: float) -> bool:
        """Start or extend the cooldown to end ``seconds`` from now.

        The deadline only ever moves forward: a shorter cooldown requested
        while a longer one is running is ignored.

        Returns:
            ``True`` if the deadline changed.
        """
        if seconds <= 0:
            return False
        with self._lock:
            candidate = self._clock() + seconds
            if candidate <= self._until:
                return False
            self._until = candidate
            return True

    def clear(self) -> None:
        """Drop any active cooldown."""
        with self._lock:
            self._until = 0.0


_cooldown = RateLimitCooldown()


def get_cooldown() -> RateLimitCooldown:
    """Return the process-wide cooldown instance."""
    return _cooldown

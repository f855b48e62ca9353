"""
Fixed-window rate limiting keyed by caller address.

Two windows are used by the API: a strict one for authentication endpoints
and a looser one for general traffic. State lives in process memory, so each
worker enforces its own counters.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Tuple

from domain.errors import RateLimited

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    Allow at most `limit` hits per key within each `window_seconds` window.

    The window for a key starts at its first hit.
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1 or window_seconds < 1:
            raise ValueError("limit and window_seconds must be positive")
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> None:
        """
        Count one request for `key`.

        Raises:
            RateLimited: The key already used up its window
        """

        with self._lock:
            now = self._clock()
            self._evict_expired(now)

            started, count = self._windows.get(key, (now, 0))
            if count >= self.limit:
                retry_after = max(1, int(started + self.window_seconds - now))
                logger.warning(
                    "Rate limit exceeded",
                    extra={"limiter": self.name, "client": key, "retry_after": retry_after},
                )
                raise RateLimited("Too many requests. Please try again later.", retry_after=retry_after)

            self._windows[key] = (started, count + 1)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]


__all__ = ["FixedWindowRateLimiter"]

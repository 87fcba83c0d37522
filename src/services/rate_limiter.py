"""Fixed-window request counters.

Used for the per-provider LLM request budgets and for throttling the
Google Calendar webhook endpoint per client IP.  Counters are keyed
``{key}_{window}`` where ``window`` is the current minute number; windows
older than ``RETENTION_WINDOWS`` are pruned on every write.
"""

from __future__ import annotations

import threading
import time

WINDOW_SECONDS = 60
RETENTION_WINDOWS = 5


class RateLimiter:
    """Per-key request counter over fixed one-minute windows."""

    def __init__(
        self,
        limits: dict[str, int] | None = None,
        *,
        default_limit: int = 10,
        window_seconds: int = WINDOW_SECONDS,
    ) -> None:
        self._limits = dict(limits or {})
        self._default_limit = default_limit
        self._window_seconds = window_seconds
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def _window(self) -> int:
        return int(time.time() // self._window_seconds)

    def limit_for(self, key: str) -> int:
        return self._limits.get(key, self._default_limit)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counts.get(f"{key}_{self._window()}", 0)

    def is_limited(self, key: str) -> bool:
        """``True`` when *key* has used up its budget for the current window."""
        return self.count(key) >= self.limit_for(key)

    def hit(self, key: str) -> bool:
        """Check and record in one step.  ``False`` means the request is over budget."""
        window = self._window()
        with self._lock:
            bucket = f"{key}_{window}"
            current = self._counts.get(bucket, 0)
            if current >= self.limit_for(key):
                return False
            self._counts[bucket] = current + 1
            self._prune(window)
            return True

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    def _prune(self, window: int) -> None:
        oldest = window - RETENTION_WINDOWS
        stale = [b for b in self._counts if int(b.rsplit("_", 1)[1]) < oldest]
        for bucket in stale:
            del self._counts[bucket]

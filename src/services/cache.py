"""Thread-safe in-memory LRU cache with a byte-size ceiling and optional TTL.

Design decisions
────────────────
• **OrderedDict** for O(1) LRU eviction and promotion.
• **Size tracking** via ``json.dumps`` byte length, accurate enough for the
  JSON-like dicts we cache (LLM results, OAuth access tokens).
• **threading.Lock** because blocking HTTP calls run in worker threads
  (``asyncio.to_thread``) and may touch the cache concurrently.
• **Per-entry TTL**: an expired entry behaves as a miss and is dropped on
  the next read.
• **Prefix-based invalidation** so related entries (e.g. every
  ``dental_introduction_*`` key) can be cleared at once.

>>> cache = LRUCache(max_bytes=20 * 1024 * 1024)  # 20 MB
>>> cache.put("dental_introduction_Implants_generic_{}", result, ttl_seconds=86_400)
>>> cache.get("dental_introduction_Implants_generic_{}")
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)

# Default ceiling: 20 MB
DEFAULT_MAX_BYTES = 20 * 1024 * 1024


class LRUCache:
    """Least-Recently-Used cache bounded by total estimated byte size."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self._max_bytes = max_bytes
        self._current_bytes = 0
        # key → (value, estimated_size_bytes, expires_at or None)
        self._store: OrderedDict[str, tuple[Any, int, float | None]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    # ── Size estimation ──────────────────────────────────────────────

    @staticmethod
    def _estimate_bytes(value: Any) -> int:
        """Estimated size of *value*: JSON length, else ``str()`` length."""
        try:
            return len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError, OverflowError):
            return len(str(value).encode("utf-8"))

    def _drop(self, key: str) -> None:
        _, size, _ = self._store.pop(key)
        self._current_bytes -= size

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the cached value (promoting it to MRU) or ``None``."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, _, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                self._drop(key)
                self.misses += 1
                logger.debug("Cache: expired %s", key)
                return None
            self._store.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Insert or overwrite *key*.  Evicts LRU entries if needed."""
        size = self._estimate_bytes(value)

        if size > self._max_bytes:
            logger.debug(
                "Cache: skipping key %s (size %d > max %d)",
                key, size, self._max_bytes,
            )
            return

        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        with self._lock:
            if key in self._store:
                self._drop(key)

            while self._current_bytes + size > self._max_bytes and self._store:
                evicted_key, (_, evicted_size, _) = self._store.popitem(last=False)
                self._current_bytes -= evicted_size
                logger.debug("Cache: evicted %s (%d bytes)", evicted_key, evicted_size)

            self._store[key] = (value, size, expires_at)
            self._current_bytes += size

    def invalidate(self, key: str) -> bool:
        """Remove a single key.  Returns ``True`` if the key existed."""
        with self._lock:
            if key in self._store:
                self._drop(key)
                return True
            return False

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key that starts with *prefix*.  Returns count removed."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for key in keys:
                self._drop(key)
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0
            self.hits = 0
            self.misses = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    @property
    def entry_count(self) -> int:
        return len(self._store)

    def has(self, key: str) -> bool:
        """Check if a key is present *without* promoting it."""
        return key in self._store

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._store)

    def stats(self) -> dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "size": self.entry_count,
            "bytes": self.current_bytes,
            "hitRate": self.hits / lookups if lookups else 0,
            "entries": self.keys(),
        }

"""In-memory response cache with per-entry TTL and bounded size."""
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    value: Any
    stored_at: float
    ttl: float


class ResponseCache:
    """
    Bounded TTL cache for upstream responses.

    Constructed once per application (see api.main lifespan) and handed to
    request handlers through a dependency. When full, the oldest-inserted entry
    is evicted. Expired entries are dropped when read, and a full sweep runs at
    most once per `cleanup_interval` seconds on access.
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: float = 300.0,
        cleanup_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def cache_key(url: str, params: dict[str, Any] | None = None) -> str:
        """Build a key from a URL and its query parameters."""
        param_str = json.dumps(params, sort_keys=True, default=str) if params else ""
        return f"{url}:{param_str}"

    def _expired(self, entry: _CacheEntry, now: float) -> bool:
        return now - entry.stored_at > entry.ttl

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        self.cleanup()

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if self._expired(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        now = self._clock()
        self._maybe_cleanup(now)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, now):
            del self._entries[key]
            return None
        return entry.value

    def has(self, key: str) -> bool:
        """Check for a live entry."""
        return self.get(key) is not None

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value, evicting the oldest entry if the cache is full."""
        now = self._clock()
        self._maybe_cleanup(now)
        if key in self._entries:
            # Re-inserting moves the key to the newest position
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full, evicted %s", evicted)
        self._entries[key] = _CacheEntry(
            value=value,
            stored_at=now,
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def delete(self, key: str) -> None:
        """Remove a single entry if present."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def invalidate(self, pattern: str | None = None) -> int:
        """
        Drop entries whose key contains `pattern`, or everything when no pattern is given.

        Returns:
            Number of entries removed.
        """
        if pattern is None:
            removed = len(self._entries)
            self.clear()
            return removed
        keys = [key for key in self._entries if pattern in key]
        for key in keys:
            del self._entries[key]
        return len(keys)

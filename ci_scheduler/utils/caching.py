"""Short-lived async cache for fetched ``.ci.yaml`` text.

A configuration file at a given commit never changes, but the same commit
is resolved several times in quick succession (presubmit trigger, check
run retries, ingestion of the merge commit). ``AsyncCache`` keeps the raw
text for a few minutes so those resolutions share one fetch.

Example:
    >>> cache = AsyncCache(ttl_seconds=300, max_size=500)
    >>> await cache.set("flutter/flutter/abc123", text)
    >>> await cache.get("flutter/flutter/abc123")

Thread Safety:
    Operations use an asyncio.Lock and are safe for concurrent tasks on
    one event loop. The cache is per process.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

log = structlog.get_logger(__name__)


class AsyncCache:
    """Async key/value cache with TTL expiry and oldest-entry eviction.

    Attributes:
        _cache: Internal storage mapping keys to (value, timestamp) tuples.
        _ttl: Time-to-live as a timedelta.
        _max_size: Maximum number of entries before eviction.
    """

    def __init__(self, ttl_seconds: int = 300, max_size: int = 1000) -> None:
        """Initialize the async cache.

        Args:
            ttl_seconds: Seconds an entry stays valid. Zero disables caching.
            max_size: Maximum number of entries; the oldest is evicted first.
        """
        self._cache: dict[str, tuple[Any, datetime]] = {}
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_size = max_size
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        async with self._lock:
            if key in self._cache:
                value, timestamp = self._cache[key]
                if datetime.now(UTC) - timestamp < self._ttl:
                    log.debug("cache_hit", key=key)
                    return value
                del self._cache[key]
                log.debug("cache_expired", key=key)

            log.debug("cache_miss", key=key)
            return None

    async def set(self, key: str, value: Any) -> None:
        """Store ``value``, evicting the oldest entry when full."""
        if self._ttl <= timedelta(0):
            return
        async with self._lock:
            if key not in self._cache and len(self._cache) >= self._max_size:
                self._evict_oldest()

            self._cache[key] = (value, datetime.now(UTC))
            log.debug("cache_set", key=key)

    def _evict_oldest(self) -> None:
        # Caller holds the lock.
        if not self._cache:
            return
        oldest_key = min(self._cache.items(), key=lambda x: x[1][1])[0]
        del self._cache[oldest_key]
        log.debug("cache_evicted", key=oldest_key)

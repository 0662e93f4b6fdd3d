"""
Result Cache

In-process TTL cache for derived per-employee records and the views
computed from them.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

class CachePrefix(str, Enum):
    """Cache key prefixes for different data types."""

    RECORDS = "records"
    STATS = "stats"


class CacheTTL:
    """Default TTL values, in seconds."""

    RECORDS = 300  # 5 minutes


class CacheMetrics(BaseModel):
    """Cache performance metrics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    expirations: int = 0

    @property
    def hit_ratio(self) -> float:
        """Calculate cache hit ratio."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]


# =============================================================================
# Result Cache
# =============================================================================

class ResultCache:
    """
    TTL cache kept in process memory.

    Values are stored as-is (not serialized); callers store immutable
    models. ``clock`` returns seconds and defaults to ``time.monotonic``.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = CacheTTL.RECORDS,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ):
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}
        self._metrics = CacheMetrics()

    def _make_key(self, cache_type: CachePrefix, key: str) -> str:
        """Generate a cache key with proper namespace."""
        return f"{cache_type.value}:{key}"

    # =========================================================================
    # Core Cache Operations
    # =========================================================================

    def get(self, cache_type: CachePrefix, key: str, default: Any = None) -> Any:
        """
        Get a value from cache.

        Args:
            cache_type: Type of cached data
            key: Cache key
            default: Default value if not found or expired

        Returns:
            Cached value or default
        """
        full_key = self._make_key(cache_type, key)
        entry = self._entries.get(full_key)

        if entry is not None and entry.expires_at is not None and self._clock() >= entry.expires_at:
            del self._entries[full_key]
            self._metrics.expirations += 1
            logger.debug(f"Cache entry expired: {full_key}")
            entry = None

        if entry is None:
            self._metrics.misses += 1
            return default

        self._metrics.hits += 1
        return entry.value

    def set(
        self,
        cache_type: CachePrefix,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """
        Set a value in cache.

        Returns:
            False when caching is disabled
        """
        if not self.enabled:
            return False

        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        expires_at = self._clock() + ttl if ttl else None

        self._entries[self._make_key(cache_type, key)] = _Entry(value=value, expires_at=expires_at)
        self._metrics.sets += 1
        return True

    def get_or_set(
        self,
        cache_type: CachePrefix,
        key: str,
        factory: Callable[[], Any],
        ttl_seconds: Optional[int] = None,
    ) -> Any:
        """Return the cached value, computing and storing it on a miss."""
        sentinel = object()
        value = self.get(cache_type, key, default=sentinel)
        if value is not sentinel:
            return value

        value = factory()
        self.set(cache_type, key, value, ttl_seconds)
        return value

    def delete(self, cache_type: CachePrefix, key: str) -> bool:
        """Delete a value from cache."""
        removed = self._entries.pop(self._make_key(cache_type, key), None) is not None
        if removed:
            self._metrics.deletes += 1
        return removed

    def invalidate_prefix(self, cache_type: CachePrefix) -> int:
        """
        Invalidate every key under a prefix.

        Returns:
            Number of keys invalidated
        """
        prefix = f"{cache_type.value}:"
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]

        self._metrics.deletes += len(keys)
        return len(keys)

    def invalidate(self) -> int:
        """Drop every entry."""
        count = len(self._entries)
        self._entries.clear()
        self._metrics.deletes += count
        if count:
            logger.info(f"Cache cleared ({count} entries)")
        return count

    # =========================================================================
    # Metrics
    # =========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache performance metrics."""
        return {
            "hits": self._metrics.hits,
            "misses": self._metrics.misses,
            "sets": self._metrics.sets,
            "deletes": self._metrics.deletes,
            "expirations": self._metrics.expirations,
            "hit_ratio": round(self._metrics.hit_ratio, 4),
            "entries": len(self._entries),
        }

    def reset_metrics(self) -> None:
        """Reset cache metrics."""
        self._metrics = CacheMetrics()

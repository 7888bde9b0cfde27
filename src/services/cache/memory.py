"""
In-Memory Insight Cache

Process-local TTL cache. Expired entries are evicted lazily: a read of
an expired key deletes it and reports a miss. There is no background
sweeper and no size bound; entries live at most ttl_seconds past their
last write and the key space is per user and period.

No locking: two concurrent identical requests may both miss and both
regenerate. The later set() simply overwrites the earlier one.
"""

import hashlib
import time
from urllib.parse import quote
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from src.models.insight import DateRange, InsightResponse
from src.services.cache.interface import (
    KEY_PREFIX,
    CacheError,
    InsightCacheInterface,
)


logger = structlog.get_logger("insights.cache")


def _encode(part: str) -> str:
    return quote(part, safe="")


@dataclass
class CacheEntry:
    """A stored insight and its expiry on the cache clock."""
    value: InsightResponse
    stored_at: float
    expires_at: float


@dataclass
class CacheStats:
    """Counters since the cache was created."""
    hits: int = 0
    misses: int = 0
    expired: int = 0


class InMemoryInsightCache(InsightCacheInterface):
    """
    Dictionary-backed insight cache with lazy TTL eviction.

    The clock is injectable so tests can advance time without sleeping.
    """

    def __init__(
        self,
        default_ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl_seconds <= 0:
            raise CacheError("default_ttl_seconds must be positive")
        self._entries: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._stats = CacheStats()

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl

    def generate_key(
        self,
        user_id: str,
        date_range: DateRange,
        currency: str,
        fingerprint: str,
    ) -> str:
        """
        Key format: ai-insights:{user}:{from}:{to}:{currency}:{digest}

        The fingerprint is reduced to its SHA-256 hex digest so keys stay
        short for any number of transactions. Free-form parts are
        percent-encoded so a ":" inside them cannot shift the fields.
        """
        digest = hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()
        return ":".join([
            KEY_PREFIX,
            _encode(user_id),
            _encode(date_range.from_date),
            _encode(date_range.to_date),
            _encode(currency),
            digest,
        ])

    async def get(self, key: str) -> Optional[InsightResponse]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._stats.expired += 1
            self._stats.misses += 1
            logger.debug("cache_entry_expired", key=key)
            return None

        self._stats.hits += 1
        return entry.value

    async def set(
        self,
        key: str,
        value: InsightResponse,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise CacheError(f"ttl_seconds must be positive, got {ttl}")
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            stored_at=now,
            expires_at=now + ttl,
        )

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        self._entries.clear()

    async def clear_user_cache(self, user_id: str) -> int:
        prefix = f"{KEY_PREFIX}:{_encode(user_id)}:"
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.info("user_cache_cleared", user_id=user_id, removed=len(doomed))
        return len(doomed)

    def get_stats(self) -> dict[str, Any]:
        lookups = self._stats.hits + self._stats.misses
        return {
            "size": len(self._entries),
            "keys": list(self._entries),
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "expired": self._stats.expired,
            "hit_rate": self._stats.hits / lookups * 100 if lookups else 0.0,
        }

    def __len__(self) -> int:
        return len(self._entries)

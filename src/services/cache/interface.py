"""
Abstract Insight Cache Interface

Generated insights are cached for a short time, keyed on the user, the
reporting window, the currency and a content fingerprint. The pipeline
only depends on this interface, so the in-process cache can be replaced
by a shared store (Redis, memcached) without touching business logic.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from src.models.insight import DateRange, InsightResponse


KEY_PREFIX = "ai-insights"


class InsightCacheInterface(ABC):
    """
    Abstract interface for the insight cache.

    Values are InsightResponse objects, which are immutable; a hit
    returns exactly what was stored.
    """

    @abstractmethod
    def generate_key(
        self,
        user_id: str,
        date_range: DateRange,
        currency: str,
        fingerprint: str,
    ) -> str:
        """
        Build the cache key for one request. Must be pure.

        Args:
            user_id: Requesting user
            date_range: Reporting window
            currency: Display currency
            fingerprint: Content fingerprint of transactions and aggregates

        Returns:
            Cache key string
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[InsightResponse]:
        """
        Look up a cached insight.

        Returns:
            The stored value, or None if absent or expired
        """
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: InsightResponse,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        """
        Store an insight, replacing any existing value for the key.

        Args:
            key: Cache key from generate_key()
            value: Insight to store
            ttl_seconds: Lifetime; None means the cache's default
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    async def clear_user_cache(self, user_id: str) -> int:
        """
        Remove every entry belonging to one user.

        Returns:
            Number of entries removed
        """
        pass

    @abstractmethod
    def get_stats(self) -> dict[str, Any]:
        """Return size, keys and hit/miss counters."""
        pass


class CacheError(Exception):
    """Base exception for cache operations."""
    pass

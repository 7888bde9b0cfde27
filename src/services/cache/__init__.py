"""
Cache Services Package

Provides the insight cache interface and its in-memory implementation.
"""

from src.services.cache.interface import (
    KEY_PREFIX,
    CacheError,
    InsightCacheInterface,
)
from src.services.cache.memory import InMemoryInsightCache

__all__ = [
    "KEY_PREFIX",
    "CacheError",
    "InsightCacheInterface",
    "InMemoryInsightCache",
]

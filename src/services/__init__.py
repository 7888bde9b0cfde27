"""Services package."""

from src.services.cache import (
    CacheError,
    InMemoryInsightCache,
    InsightCacheInterface,
)
from src.services.providers import (
    GeminiInsightProvider,
    InsightProvider,
    OpenAIInsightProvider,
    ProviderError,
    ProviderResult,
    QuotaExceededError,
)
from src.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    StorageError,
)

__all__ = [
    # Cache services
    "CacheError",
    "InMemoryInsightCache",
    "InsightCacheInterface",
    # AI providers
    "GeminiInsightProvider",
    "InsightProvider",
    "OpenAIInsightProvider",
    "ProviderError",
    "ProviderResult",
    "QuotaExceededError",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "StorageError",
]

"""
AI Provider Services Package

Provides the provider contract, error classification, and the Gemini
and OpenAI implementations.
"""

from src.services.providers.base import (
    InsightProvider,
    ProviderError,
    ProviderResult,
    QuotaExceededError,
    classify_provider_error,
    extract_json_object,
    is_quota_error,
)
from src.services.providers.gemini_provider import (
    GeminiInsightProvider,
    GeminiSpendingAnalysis,
    GeminiTransaction,
    adapt_gemini_analysis,
)
from src.services.providers.openai_provider import (
    FinancialData,
    OpenAIInsightPayload,
    OpenAIInsightProvider,
    adapt_openai_insights,
    parse_openai_payload,
)

__all__ = [
    # Contract
    "InsightProvider",
    "ProviderResult",
    # Exceptions
    "ProviderError",
    "QuotaExceededError",
    "classify_provider_error",
    "is_quota_error",
    "extract_json_object",
    # Gemini
    "GeminiInsightProvider",
    "GeminiSpendingAnalysis",
    "GeminiTransaction",
    "adapt_gemini_analysis",
    # OpenAI
    "FinancialData",
    "OpenAIInsightPayload",
    "OpenAIInsightProvider",
    "adapt_openai_insights",
    "parse_openai_payload",
]

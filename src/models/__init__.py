"""
Data Models Package

This package contains all Pydantic models used by the insight pipeline.
All data flowing through the system must conform to these schemas.
"""

from src.models.insight import (
    MAX_HIGHLIGHTS,
    MAX_RECOMMENDATIONS,
    AggregatesRequest,
    AIInsight,
    Category,
    DateRange,
    FinancialAggregates,
    InsightRequest,
    InsightResponse,
    Priority,
    ProviderName,
    Recommendation,
    TopCategory,
    Transaction,
    TransactionType,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Insight models
    "MAX_HIGHLIGHTS",
    "MAX_RECOMMENDATIONS",
    "AggregatesRequest",
    "AIInsight",
    "Category",
    "DateRange",
    "FinancialAggregates",
    "InsightRequest",
    "InsightResponse",
    "Priority",
    "ProviderName",
    "Recommendation",
    "TopCategory",
    "Transaction",
    "TransactionType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

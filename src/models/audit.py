"""
Audit Models for the Insight Pipeline

Every step of insight generation is recorded as an audit event:
cache lookups, each provider attempt, fallbacks, and failures.
This gives:
1. Traceability of which generator produced a given insight
2. Visibility into provider outages and quota exhaustion
3. Debugging information when the pipeline degrades

Audit events are append-only. They are never modified once created.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each state of the request pipeline has its own event type.
    """
    # Request handling
    INSIGHT_REQUESTED = "insight_requested"
    REQUEST_REJECTED = "request_rejected"

    # Cache
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    INSIGHT_CACHED = "insight_cached"

    # Provider chain
    PROVIDER_SKIPPED = "provider_skipped"
    PROVIDER_SUCCEEDED = "provider_succeeded"
    PROVIDER_FAILED = "provider_failed"
    PROVIDER_QUOTA_EXCEEDED = "provider_quota_exceeded"
    FALLBACK_USED = "fallback_used"

    # Guards
    PIPELINE_FAILURE = "pipeline_failure"
    TERMINAL_FAILURE = "terminal_failure"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'insight_request', 'provider', 'cache')"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="User the request was made for"
    )

    # Correlation - ties together all events of one request
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every event of a single insight request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.cache_hit(user_id, cache_key, correlation_id)
        event = AuditEventBuilder.provider_failed("openai", error, True, correlation_id)
    """

    @staticmethod
    def insight_requested(
        user_id: str,
        date_range: str,
        transaction_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_REQUESTED,
            entity_type="insight_request",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Insight requested for {date_range}",
            details={
                "date_range": date_range,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def request_rejected(
        error_type: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REQUEST_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="insight_request",
            correlation_id=correlation_id,
            description=f"Request rejected: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def cache_hit(
        user_id: str,
        cache_key: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_HIT,
            entity_type="cache",
            user_id=user_id,
            correlation_id=correlation_id,
            description="Returning cached insight",
            details={"cache_key": cache_key},
        )

    @staticmethod
    def cache_miss(
        user_id: str,
        cache_key: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_MISS,
            severity=AuditSeverity.DEBUG,
            entity_type="cache",
            user_id=user_id,
            correlation_id=correlation_id,
            description="No cached insight, generating",
            details={"cache_key": cache_key},
        )

    @staticmethod
    def insight_cached(
        cache_key: str,
        ttl_seconds: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_CACHED,
            severity=AuditSeverity.DEBUG,
            entity_type="cache",
            correlation_id=correlation_id,
            description=f"Insight cached for {ttl_seconds:g}s",
            details={
                "cache_key": cache_key,
                "ttl_seconds": ttl_seconds,
            },
        )

    @staticmethod
    def provider_skipped(
        provider: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="provider",
            correlation_id=correlation_id,
            description=f"Provider {provider} not available, skipping",
            details={"provider": provider},
        )

    @staticmethod
    def provider_succeeded(
        provider: str,
        duration_ms: float,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_SUCCEEDED,
            entity_type="provider",
            correlation_id=correlation_id,
            description=f"Insight generated by {provider}",
            details={
                "provider": provider,
                "duration_ms": round(duration_ms, 1),
            },
        )

    @staticmethod
    def provider_failed(
        provider: str,
        error_message: str,
        quota_exceeded: bool,
        correlation_id: UUID,
        duration_ms: float = 0.0,
        error_code: Optional[str] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.PROVIDER_QUOTA_EXCEEDED
            if quota_exceeded
            else AuditEventType.PROVIDER_FAILED
        )
        description = (
            f"Provider {provider} quota exceeded"
            if quota_exceeded
            else f"Provider {provider} failed"
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type="provider",
            correlation_id=correlation_id,
            description=description,
            error_code=error_code,
            error_message=error_message,
            details={
                "provider": provider,
                "duration_ms": round(duration_ms, 1),
            },
        )

    @staticmethod
    def fallback_used(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FALLBACK_USED,
            entity_type="insight_request",
            correlation_id=correlation_id,
            description="Using rule-based insight",
            details={"reason": reason},
        )

    @staticmethod
    def pipeline_failure(
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIPELINE_FAILURE,
            severity=AuditSeverity.ERROR,
            entity_type="insight_request",
            correlation_id=correlation_id,
            description=f"Pipeline error: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def terminal_failure(
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TERMINAL_FAILURE,
            severity=AuditSeverity.CRITICAL,
            entity_type="insight_request",
            correlation_id=correlation_id,
            description=f"Rule-based synthesis failed: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

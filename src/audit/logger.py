"""
Audit Logger

Every significant step of insight generation is logged:
cache hits and misses, each provider attempt, fallbacks, and failures.

The audit logger:
- Is async to not block the request flow
- Never propagates storage failures into the request flow
- Supports correlation IDs to trace all events of one request
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

_LOG_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Every event goes to the structured log at its own severity, and
    is appended to the audit storage when one is configured.
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("insights.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event and persist it when storage is configured.

        Returns False only when the storage write failed.
        """
        emit = getattr(self._logger, _LOG_METHODS[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is not None:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_insight_requested(
        self,
        user_id: str,
        date_range: str,
        transaction_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log receipt of a valid insight request."""
        await self.log(AuditEventBuilder.insight_requested(
            user_id=user_id,
            date_range=date_range,
            transaction_count=transaction_count,
            correlation_id=correlation_id,
        ))

    async def log_request_rejected(
        self,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a 400-class rejection."""
        await self.log(AuditEventBuilder.request_rejected(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_cache_hit(
        self,
        user_id: str,
        cache_key: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.cache_hit(
            user_id=user_id,
            cache_key=cache_key,
            correlation_id=correlation_id,
        ))

    async def log_cache_miss(
        self,
        user_id: str,
        cache_key: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.cache_miss(
            user_id=user_id,
            cache_key=cache_key,
            correlation_id=correlation_id,
        ))

    async def log_insight_cached(
        self,
        cache_key: str,
        ttl_seconds: float,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.insight_cached(
            cache_key=cache_key,
            ttl_seconds=ttl_seconds,
            correlation_id=correlation_id,
        ))

    async def log_provider_skipped(
        self,
        provider: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.provider_skipped(
            provider=provider,
            correlation_id=correlation_id,
        ))

    async def log_provider_succeeded(
        self,
        provider: str,
        duration_ms: float,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.provider_succeeded(
            provider=provider,
            duration_ms=duration_ms,
            correlation_id=correlation_id,
        ))

    async def log_provider_failed(
        self,
        provider: str,
        error_message: str,
        quota_exceeded: bool,
        correlation_id: UUID,
        duration_ms: float = 0.0,
        error_code: Optional[str] = None,
    ) -> None:
        """Log a failed provider attempt; quota exhaustion gets its own event type."""
        await self.log(AuditEventBuilder.provider_failed(
            provider=provider,
            error_message=error_message,
            quota_exceeded=quota_exceeded,
            correlation_id=correlation_id,
            duration_ms=duration_ms,
            error_code=error_code,
        ))

    async def log_fallback_used(
        self,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.fallback_used(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_pipeline_failure(
        self,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.pipeline_failure(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_terminal_failure(
        self,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.terminal_failure(
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through every step.
    """
    return uuid4()

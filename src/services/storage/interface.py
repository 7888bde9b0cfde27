"""
Abstract Audit Storage Interface

The audit logger appends events through this interface; readers query
them by request (correlation id), by type, or by recency. The shipped
backend is InMemoryAuditStorage.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from src.models.audit import AuditEvent, AuditEventType


class AuditStorageInterface(ABC):
    """
    Append-only store of audit events.

    Query results are chronological, except get_recent_events which is
    newest first.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Store one event. Returns True when it was accepted."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Every retained event of one insight request."""
        pass

    @abstractmethod
    async def get_events_by_type(
        self,
        event_type: AuditEventType,
    ) -> list[AuditEvent]:
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """At most `limit` events, newest first."""
        pass


class StorageError(Exception):
    """Raised for misconfigured or failing audit storage."""
    pass

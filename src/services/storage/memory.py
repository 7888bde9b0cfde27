"""
In-Memory Audit Storage

Keeps the most recent audit events in a bounded buffer. Oldest events
are dropped once the buffer is full. Used by default in the running
service and as the storage backend in tests.
"""

from collections import deque
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent, AuditEventType
from src.services.storage.interface import AuditStorageInterface, StorageError


class InMemoryAuditStorage(AuditStorageInterface):
    """Bounded, process-local audit log."""

    def __init__(self, max_events: Optional[int] = 1000):
        """
        Args:
            max_events: Buffer size. None means unbounded.
        """
        if max_events is not None and max_events < 0:
            raise StorageError("max_events must be non-negative")
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_type(
        self,
        event_type: AuditEventType,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.event_type == event_type]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        if limit <= 0:
            return []
        return list(reversed(self._events))[:limit]

    def __len__(self) -> int:
        return len(self._events)

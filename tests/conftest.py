"""Shared fixtures."""

import pytest

from src.audit import AuditLogger
from src.config import InsightSettings
from src.services.storage import InMemoryAuditStorage
from tests.factories import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage(max_events=500)


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def insight_settings() -> InsightSettings:
    return InsightSettings(
        cache_ttl_seconds=30,
        default_user_id="current-user",
        default_currency="USD",
        provider_order="gemini,openai",
    )

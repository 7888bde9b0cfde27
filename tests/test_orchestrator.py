"""
Integration tests for the insight flow.

Providers are fakes; cache, audit logger and synthesizer are real.
"""

from unittest.mock import MagicMock

import pytest

from src.insights import RuleBasedSynthesizer
from src.models.audit import AuditEventType
from src.models.insight import ProviderName
from src.orchestrator import (
    TERMINAL_ERROR_MESSAGE,
    InsightRequestHandler,
    ProviderOrchestrator,
    degraded_response,
)
from src.services.cache import InMemoryInsightCache
from tests.factories import (
    FakeProvider,
    StatusError,
    make_aggregates,
    make_request,
    make_request_body,
    make_transaction,
)


def _handler(providers, clock, audit_logger, settings, synthesizer=None, cache=None):
    if synthesizer is None:
        synthesizer = RuleBasedSynthesizer()
    return InsightRequestHandler(
        cache=cache if cache is not None else InMemoryInsightCache(clock=clock),
        orchestrator=ProviderOrchestrator(providers, synthesizer, audit_logger),
        synthesizer=synthesizer,
        audit_logger=audit_logger,
        settings=settings,
    )


async def _event_types(storage) -> list[AuditEventType]:
    return [event.event_type for event in reversed(await storage.get_recent_events(500))]


class TestProviderOrchestrator:
    """Tests for the provider chain."""

    @pytest.mark.asyncio
    async def test_first_provider_wins(self, audit_logger):
        gemini = FakeProvider(ProviderName.GEMINI)
        openai = FakeProvider(ProviderName.OPENAI)

        response = await ProviderOrchestrator([gemini, openai], audit_logger=audit_logger).run(make_request())

        assert response.summary == "gemini summary"
        assert response.ai_powered is True
        assert response.provider == ProviderName.GEMINI
        assert response.fallback is None
        assert openai.calls == 0

    @pytest.mark.asyncio
    async def test_falls_through_on_failure(self, audit_logger, audit_storage):
        gemini = FakeProvider(ProviderName.GEMINI, error=RuntimeError("boom"))
        openai = FakeProvider(ProviderName.OPENAI)

        response = await ProviderOrchestrator([gemini, openai], audit_logger=audit_logger).run(make_request())

        assert response.provider == ProviderName.OPENAI
        types = await _event_types(audit_storage)
        assert types == [AuditEventType.PROVIDER_FAILED, AuditEventType.PROVIDER_SUCCEEDED]

    @pytest.mark.asyncio
    async def test_unavailable_providers_skipped(self, audit_logger, audit_storage):
        gemini = FakeProvider(ProviderName.GEMINI, available=False)
        openai = FakeProvider(ProviderName.OPENAI)

        response = await ProviderOrchestrator([gemini, openai], audit_logger=audit_logger).run(make_request())

        assert response.provider == ProviderName.OPENAI
        assert gemini.calls == 0
        assert (await _event_types(audit_storage))[0] == AuditEventType.PROVIDER_SKIPPED

    @pytest.mark.asyncio
    async def test_rule_based_when_all_fail(self, audit_logger, audit_storage):
        request = make_request(aggregates=make_aggregates(income=1000, expenses=1200))
        gemini = FakeProvider(ProviderName.GEMINI, error=StatusError("quota", status_code=429))
        openai = FakeProvider(ProviderName.OPENAI, error=StatusError("rate", code="insufficient_quota"))

        response = await ProviderOrchestrator([gemini, openai], audit_logger=audit_logger).run(request)

        assert response.fallback is True
        assert response.ai_powered is None
        assert response.recommendations[0].title == "Address Negative Cash Flow"
        types = await _event_types(audit_storage)
        assert types == [
            AuditEventType.PROVIDER_QUOTA_EXCEEDED,
            AuditEventType.PROVIDER_QUOTA_EXCEEDED,
            AuditEventType.FALLBACK_USED,
        ]

    @pytest.mark.asyncio
    async def test_no_providers(self):
        response = await ProviderOrchestrator([]).run(make_request())
        assert response.fallback is True
        assert response.summary


class TestInsightRequestHandler:
    """Tests for the full request flow."""

    @pytest.mark.asyncio
    async def test_cache_idempotence(self, clock, audit_logger, insight_settings):
        """A second identical request within the TTL is served from cache."""
        gemini = FakeProvider(ProviderName.GEMINI)
        handler = _handler([gemini], clock, audit_logger, insight_settings)
        request = make_request()

        first = await handler.generate(request)
        second = await handler.generate(request)

        assert gemini.calls == 1
        assert first.cached is None
        assert second.cached is True
        assert second.model_dump(exclude={"cached"}) == first.model_dump(exclude={"cached"})

    @pytest.mark.asyncio
    async def test_cache_expires(self, clock, audit_logger, insight_settings):
        gemini = FakeProvider(ProviderName.GEMINI)
        handler = _handler([gemini], clock, audit_logger, insight_settings)

        await handler.generate(make_request())
        clock.advance(insight_settings.cache_ttl_seconds)
        response = await handler.generate(make_request())

        assert gemini.calls == 2
        assert response.cached is None

    @pytest.mark.asyncio
    async def test_changed_transaction_misses(self, clock, audit_logger, insight_settings):
        """A changed transaction amount produces a new cache key."""
        gemini = FakeProvider(ProviderName.GEMINI)
        handler = _handler([gemini], clock, audit_logger, insight_settings)

        await handler.generate(make_request(transactions=[make_transaction(amount=50)]))
        response = await handler.generate(make_request(transactions=[make_transaction(amount=51)]))

        assert gemini.calls == 2
        assert response.cached is None

    @pytest.mark.asyncio
    async def test_rule_based_result_is_cached(self, clock, audit_logger, insight_settings):
        """With every provider down, a repeat request is still a cache hit."""
        handler = _handler([], clock, audit_logger, insight_settings)

        first = await handler.generate(make_request())
        second = await handler.generate(make_request())

        assert first.fallback is True
        assert second.cached is True

    @pytest.mark.asyncio
    async def test_pipeline_failure_falls_back(self, clock, audit_logger, audit_storage, insight_settings):
        """A cache that throws still yields a rule-based answer."""
        cache = MagicMock(spec=InMemoryInsightCache)
        cache.generate_key.side_effect = RuntimeError("cache down")
        gemini = FakeProvider(ProviderName.GEMINI)
        handler = _handler([gemini], clock, audit_logger, insight_settings, cache=cache)

        response = await handler.generate(make_request())

        assert handler.cache is cache
        cache.generate_key.assert_called_once()
        assert gemini.calls == 0
        assert response.fallback is True
        assert response.error is None
        types = await _event_types(audit_storage)
        assert AuditEventType.PIPELINE_FAILURE in types
        assert types[-1] == AuditEventType.FALLBACK_USED

    @pytest.mark.asyncio
    async def test_terminal_failure_static_insight(self, clock, audit_logger, audit_storage, insight_settings):
        """When synthesis fails too, the static insight carries an error."""
        synthesizer = MagicMock(spec=RuleBasedSynthesizer)
        synthesizer.synthesize.side_effect = ZeroDivisionError("division by zero")
        handler = _handler([], clock, audit_logger, insight_settings, synthesizer=synthesizer)

        response = await handler.generate(make_request())

        assert response == degraded_response()
        assert response.error == TERMINAL_ERROR_MESSAGE
        assert len(response.recommendations) == 1
        assert AuditEventType.TERMINAL_FAILURE in await _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_never_throws_when_everything_fails(self, clock, insight_settings):
        """Providers, cache and synthesizer all failing still returns a body."""
        cache = MagicMock(spec=InMemoryInsightCache)
        cache.generate_key.side_effect = RuntimeError("cache down")
        synthesizer = MagicMock(spec=RuleBasedSynthesizer)
        synthesizer.synthesize.side_effect = RuntimeError("synth down")
        providers = [
            FakeProvider(ProviderName.GEMINI, error=RuntimeError("x")),
            FakeProvider(ProviderName.OPENAI, error=RuntimeError("y")),
        ]
        handler = _handler(providers, clock, None, insight_settings, synthesizer=synthesizer, cache=cache)

        result = await handler.handle(make_request_body())

        assert result.status_code == 200
        assert result.body["error"] == TERMINAL_ERROR_MESSAGE
        cache.generate_key.assert_called_once()
        assert synthesizer.synthesize.call_count == 1
        assert all(provider.calls == 0 for provider in providers)

    @pytest.mark.asyncio
    async def test_handle_valid_request(self, clock, audit_logger, audit_storage, insight_settings):
        handler = _handler([FakeProvider(ProviderName.OPENAI)], clock, audit_logger, insight_settings)

        result = await handler.handle(make_request_body())

        assert result.status_code == 200
        assert result.body["aiPowered"] is True
        assert result.body["provider"] == "openai"
        types = await _event_types(audit_storage)
        assert types == [
            AuditEventType.INSIGHT_REQUESTED,
            AuditEventType.CACHE_MISS,
            AuditEventType.PROVIDER_SUCCEEDED,
            AuditEventType.INSIGHT_CACHED,
        ]

    @pytest.mark.asyncio
    async def test_events_share_correlation_id(self, clock, audit_logger, audit_storage, insight_settings):
        handler = _handler([FakeProvider(ProviderName.OPENAI)], clock, audit_logger, insight_settings)

        await handler.handle(make_request_body())

        events = await audit_storage.get_recent_events(500)
        assert len({event.correlation_id for event in events}) == 1

    @pytest.mark.asyncio
    async def test_handle_invalid_request(self, clock, audit_logger, audit_storage, insight_settings):
        gemini = FakeProvider(ProviderName.GEMINI)
        handler = _handler([gemini], clock, audit_logger, insight_settings)

        result = await handler.handle(b'{"currency": "USD"}')

        assert result.status_code == 400
        assert result.body["error"] == "Missing required data"
        assert gemini.calls == 0
        assert await _event_types(audit_storage) == [AuditEventType.REQUEST_REJECTED]

    @pytest.mark.asyncio
    async def test_handle_bad_json(self, clock, audit_logger, insight_settings):
        handler = _handler([], clock, audit_logger, insight_settings)
        result = await handler.handle(b"not json")
        assert result.status_code == 400
        assert "error" in result.body

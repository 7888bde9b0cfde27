"""
Main Orchestrator for the Financial Insights Service

This module ties together all the components and defines the
end-to-end insight flow:

    request → validate → fingerprint → cache lookup
            → (miss) providers: Gemini → OpenAI → rule-based
            → cache store → response

DESIGN DECISION: The caller NEVER sees a failure for a valid request.
- Provider failures are classified and audited, then the chain moves on
- Any unexpected exception in the flow is caught by a top-level guard
  that falls back to rule-based synthesis
- If even that fails, a static degraded insight is returned (HTTP 200)
Only malformed requests are rejected (HTTP 400).

Providers are awaited one after another, never raced, never retried.
Every step is audited under one correlation id per request.
"""

from typing import Any, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel

from src.audit import AuditLogger, create_correlation_id
from src.config import InsightSettings, get_settings
from src.insights import RuleBasedSynthesizer, full_fingerprint
from src.models.insight import (
    InsightRequest,
    InsightResponse,
    Priority,
    ProviderName,
    Recommendation,
)
from src.services.cache import InMemoryInsightCache, InsightCacheInterface
from src.services.providers import (
    GeminiInsightProvider,
    InsightProvider,
    OpenAIInsightProvider,
)
from src.services.storage import InMemoryAuditStorage
from src.validation import InsightRequestError, parse_insight_request


TERMINAL_ERROR_MESSAGE = "Failed to generate insights"


def degraded_response() -> InsightResponse:
    """Static minimal insight used when every other path has failed."""
    return InsightResponse(
        summary=(
            "We couldn't analyze your finances right now. "
            "Your data is unchanged; please try again in a moment."
        ),
        highlights=[],
        recommendations=[
            Recommendation(
                title="Review Your Transactions",
                description=(
                    "While insights are unavailable, look over this period's "
                    "largest expenses and confirm each one was planned."
                ),
                priority=Priority.MEDIUM,
            ),
        ],
        quote="A budget is telling your money where to go instead of wondering where it went.",
        fallback=True,
        error=TERMINAL_ERROR_MESSAGE,
    )


class ProviderOrchestrator:
    """
    Runs the provider chain for one request.

    Chain:
    1. Each provider in order, if available; the first success wins
    2. Rule-based synthesis when every provider is unavailable or failed

    run() never raises for a provider failure; those are captured by
    InsightProvider.try_generate() and audited here.
    """

    def __init__(
        self,
        providers: Sequence[InsightProvider],
        synthesizer: Optional[RuleBasedSynthesizer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._providers = list(providers)
        self._synthesizer = synthesizer if synthesizer is not None else RuleBasedSynthesizer()
        self._audit_logger = audit_logger

    @property
    def providers(self) -> list[InsightProvider]:
        return list(self._providers)

    async def run(
        self,
        request: InsightRequest,
        correlation_id: Optional[UUID] = None,
    ) -> InsightResponse:
        """
        Produce an insight, trying providers in order.

        Returns:
            AI insight tagged ai_powered/provider, or the rule-based
            insight tagged fallback.
        """
        correlation_id = correlation_id or create_correlation_id()
        attempted: list[str] = []

        for provider in self._providers:
            if not provider.is_available():
                if self._audit_logger:
                    await self._audit_logger.log_provider_skipped(
                        provider=provider.name.value,
                        correlation_id=correlation_id,
                    )
                continue

            attempted.append(provider.name.value)
            result = await provider.try_generate(request)

            if result.ok:
                if self._audit_logger:
                    await self._audit_logger.log_provider_succeeded(
                        provider=result.provider.value,
                        duration_ms=result.duration_ms,
                        correlation_id=correlation_id,
                    )
                return InsightResponse.from_insight(
                    result.insight,
                    ai_powered=True,
                    provider=result.provider,
                )

            if self._audit_logger:
                await self._audit_logger.log_provider_failed(
                    provider=result.provider.value,
                    error_message=result.error.message if result.error else "unknown error",
                    quota_exceeded=result.quota_exceeded,
                    correlation_id=correlation_id,
                    duration_ms=result.duration_ms,
                    error_code=result.error.code if result.error else None,
                )

        if self._audit_logger:
            reason = (
                f"all providers failed ({', '.join(attempted)})"
                if attempted
                else "no provider available"
            )
            await self._audit_logger.log_fallback_used(
                reason=reason,
                correlation_id=correlation_id,
            )

        insight = self._synthesizer.synthesize(
            request.aggregates,
            request.date_range,
            request.currency,
            request.user_id,
        )
        return InsightResponse.from_insight(insight, fallback=True)


class HandlerResponse(BaseModel):
    """Status code and JSON body for the HTTP layer."""

    status_code: int
    body: dict[str, Any]


class InsightRequestHandler:
    """
    The externally visible insight operation.

    Flow:
    1. Validate the body (400 on failure)
    2. Fingerprint transactions and aggregates, build the cache key
    3. Cache hit → stored insight tagged cached
    4. Cache miss → ProviderOrchestrator, then cache store
    5. Guard: any exception → rule-based fallback → static insight

    The cache is shared across requests and injected here once per process.
    """

    def __init__(
        self,
        cache: InsightCacheInterface,
        orchestrator: ProviderOrchestrator,
        synthesizer: Optional[RuleBasedSynthesizer] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[InsightSettings] = None,
    ):
        self._cache = cache
        self._orchestrator = orchestrator
        self._synthesizer = synthesizer if synthesizer is not None else RuleBasedSynthesizer()
        self._audit_logger = audit_logger
        self._settings = settings if settings is not None else get_settings().insights

    @property
    def cache(self) -> InsightCacheInterface:
        return self._cache

    async def handle(self, body: Union[str, bytes, dict]) -> HandlerResponse:
        """
        Validate a raw body and produce the HTTP response.

        Returns 400 with {"error", "details"?} for malformed requests,
        otherwise 200 with the insight.
        """
        correlation_id = create_correlation_id()

        try:
            request = parse_insight_request(
                body,
                default_user_id=self._settings.default_user_id,
                default_currency=self._settings.default_currency,
            )
        except InsightRequestError as e:
            if self._audit_logger:
                await self._audit_logger.log_request_rejected(
                    error_type=type(e).__name__,
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            return HandlerResponse(status_code=400, body=e.to_response_body())

        response = await self.generate(request, correlation_id)
        return HandlerResponse(status_code=200, body=response.to_response_body())

    async def generate(
        self,
        request: InsightRequest,
        correlation_id: Optional[UUID] = None,
    ) -> InsightResponse:
        """Produce an insight for a validated request. Never raises."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            if self._audit_logger:
                await self._audit_logger.log_insight_requested(
                    user_id=request.user_id,
                    date_range=request.date_range.label,
                    transaction_count=request.aggregates.transaction_count,
                    correlation_id=correlation_id,
                )
            return await self._generate_cached(request, correlation_id)
        except Exception as e:
            return await self._recover(request, correlation_id, e)

    async def _generate_cached(
        self,
        request: InsightRequest,
        correlation_id: UUID,
    ) -> InsightResponse:
        fingerprint = full_fingerprint(request.transactions, request.aggregates)
        key = self._cache.generate_key(
            request.user_id,
            request.date_range,
            request.currency,
            fingerprint,
        )

        cached = await self._cache.get(key)
        if cached is not None:
            if self._audit_logger:
                await self._audit_logger.log_cache_hit(
                    user_id=request.user_id,
                    cache_key=key,
                    correlation_id=correlation_id,
                )
            return cached.model_copy(update={"cached": True})

        if self._audit_logger:
            await self._audit_logger.log_cache_miss(
                user_id=request.user_id,
                cache_key=key,
                correlation_id=correlation_id,
            )

        response = await self._orchestrator.run(request, correlation_id)

        ttl = self._settings.cache_ttl_seconds
        await self._cache.set(key, response, ttl)
        if self._audit_logger:
            await self._audit_logger.log_insight_cached(
                cache_key=key,
                ttl_seconds=ttl,
                correlation_id=correlation_id,
            )

        return response

    async def _recover(
        self,
        request: InsightRequest,
        correlation_id: UUID,
        error: Exception,
    ) -> InsightResponse:
        """Guard path: rule-based synthesis, then the static insight."""
        if self._audit_logger:
            await self._audit_logger.log_pipeline_failure(
                error_type=type(error).__name__,
                error_message=str(error),
                correlation_id=correlation_id,
            )

        try:
            insight = self._synthesizer.synthesize(
                request.aggregates,
                request.date_range,
                request.currency,
                request.user_id,
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_terminal_failure(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return degraded_response()

        if self._audit_logger:
            await self._audit_logger.log_fallback_used(
                reason=f"pipeline error: {type(error).__name__}",
                correlation_id=correlation_id,
            )
        return InsightResponse.from_insight(insight, fallback=True)


def build_providers(
    order: Sequence[str],
) -> list[InsightProvider]:
    """Instantiate providers in the configured order."""
    factories = {
        ProviderName.GEMINI.value: GeminiInsightProvider,
        ProviderName.OPENAI.value: OpenAIInsightProvider,
    }
    return [factories[name]() for name in order]


def create_app_components(
    use_audit_storage: bool = True,
) -> tuple[InsightRequestHandler, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        use_audit_storage: Whether to keep audit events in memory.
                    Set to False for local-only structured logging.

    Returns:
        (request_handler, audit_logger)
    """
    settings = get_settings()
    insight_settings = settings.insights
    buffer_size = settings.app.audit_buffer_size

    if use_audit_storage and buffer_size > 0:
        audit_logger = AuditLogger(InMemoryAuditStorage(max_events=buffer_size))
    else:
        audit_logger = AuditLogger()  # Local-only logging

    synthesizer = RuleBasedSynthesizer()
    orchestrator = ProviderOrchestrator(
        providers=build_providers(insight_settings.provider_order_list),
        synthesizer=synthesizer,
        audit_logger=audit_logger,
    )
    handler = InsightRequestHandler(
        cache=InMemoryInsightCache(default_ttl_seconds=insight_settings.cache_ttl_seconds),
        orchestrator=orchestrator,
        synthesizer=synthesizer,
        audit_logger=audit_logger,
        settings=insight_settings,
    )

    return handler, audit_logger

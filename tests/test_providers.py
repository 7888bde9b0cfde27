"""
Tests for AI providers.

No real API calls: Gemini gets a stand-in model and OpenAI a mocked
client. SDK exception classes are used as-is for quota detection.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError

from src.config import GeminiSettings, OpenAISettings
from src.insights.tips import select_tip
from src.models.insight import Priority, ProviderName, TransactionType
from src.services.providers import (
    FinancialData,
    GeminiInsightProvider,
    GeminiSpendingAnalysis,
    OpenAIInsightPayload,
    OpenAIInsightProvider,
    ProviderError,
    QuotaExceededError,
    adapt_gemini_analysis,
    adapt_openai_insights,
    classify_provider_error,
    extract_json_object,
    is_quota_error,
    parse_openai_payload,
)
from tests.factories import StatusError, make_date_range, make_request, make_transaction


GEMINI_JSON = {
    "insights": ["You spent most on food.", "Weekend spending is high."],
    "recommendations": [
        "Cook at home: save on dining out",
        "Set a grocery budget",
        "Review subscriptions",
        "Use cash for entertainment",
        "Track daily",
    ],
    "trends": ["Spending rose mid-month"],
    "alerts": ["Overspent on dining"],
}

OPENAI_JSON = {
    "summary": "You are saving steadily.",
    "highlights": [
        {"title": "Savings", "description": "20% saved", "type": "positive", "priority": "HIGH"},
        {"title": "Food", "description": "", "type": "neutral", "priority": "weird"},
    ],
    "recommendations": [
        {"title": "Invest", "description": "Surplus idle", "action": "Open an index fund", "priority": "medium"},
    ],
    "quote": "Do not save what is left after spending.",
}


def _gemini(text: str = json.dumps(GEMINI_JSON)):
    model = SimpleNamespace(generate_content_async=AsyncMock(return_value=SimpleNamespace(text=text)))
    return GeminiInsightProvider(settings=GeminiSettings(api_key=None), model=model), model


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _openai(content=json.dumps(OPENAI_JSON), error=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=_completion(content),
        side_effect=error,
    )
    return OpenAIInsightProvider(settings=OpenAISettings(api_key=None), client=client), client


class TestQuotaClassification:
    """Tests for SDK-agnostic quota detection."""

    def test_http_429(self):
        assert is_quota_error(StatusError("Too many", status_code=429))

    @pytest.mark.parametrize("code", ["insufficient_quota", "rate_limit_exceeded", "RESOURCE_EXHAUSTED"])
    def test_quota_codes(self, code):
        assert is_quota_error(StatusError("nope", code=code))

    def test_message_wording(self):
        assert is_quota_error(RuntimeError("You exceeded your current quota"))

    def test_other_errors(self):
        assert not is_quota_error(StatusError("Bad request", status_code=400, code="invalid"))
        assert not is_quota_error(ValueError("No JSON object in model response"))

    def test_openai_rate_limit_error(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = openai.RateLimitError(
            "Rate limited",
            response=httpx.Response(429, request=request),
            body={"code": "insufficient_quota"},
        )
        classified = classify_provider_error("openai", error)
        assert isinstance(classified, QuotaExceededError)
        assert classified.cause is error

    def test_google_resource_exhausted(self):
        classified = classify_provider_error("gemini", google_exceptions.ResourceExhausted("limit"))
        assert isinstance(classified, QuotaExceededError)

    def test_generic_error(self):
        classified = classify_provider_error("gemini", ValueError("bad"))
        assert type(classified) is ProviderError
        assert classified.provider == "gemini"
        assert classified.message == "bad"

    def test_provider_errors_pass_through(self):
        error = QuotaExceededError("openai", "quota")
        assert classify_provider_error("openai", error) is error


class TestJsonExtraction:
    """Tests for tolerant JSON parsing."""

    def test_plain(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_surrounding_prose(self):
        assert extract_json_object('Here you go: {"a": 1} Thanks!') == {"a": 1}

    def test_no_object(self):
        with pytest.raises(ValueError):
            extract_json_object("no json here")

    def test_array_is_rejected(self):
        with pytest.raises(ValueError):
            extract_json_object("[1, 2]")


class TestGeminiAdapter:
    """Tests for mapping Gemini analyses onto AIInsight."""

    def test_mapping(self):
        date_range = make_date_range()
        insight = adapt_gemini_analysis(GeminiSpendingAnalysis(**GEMINI_JSON), "u1", date_range)

        assert insight.summary == "You spent most on food."
        assert insight.highlights == [
            "Weekend spending is high.",
            "Overspent on dining",
            "Spending rose mid-month",
        ]
        assert len(insight.recommendations) == 4
        assert [r.priority for r in insight.recommendations] == [
            Priority.HIGH, Priority.MEDIUM, Priority.LOW, Priority.LOW,
        ]
        assert insight.recommendations[0].title == "Cook at home"
        assert insight.recommendations[0].description == "save on dining out"
        assert insight.quote == select_tip("u1", date_range)

    def test_highlights_bounded(self):
        analysis = GeminiSpendingAnalysis(insights=["s"] + [f"i{i}" for i in range(10)])
        insight = adapt_gemini_analysis(analysis, "u1", make_date_range())
        assert len(insight.highlights) == 5

    def test_empty_analysis_fails(self):
        with pytest.raises(ValueError):
            adapt_gemini_analysis(GeminiSpendingAnalysis(), "u1", make_date_range())


class TestGeminiProvider:
    """Tests for GeminiInsightProvider."""

    def test_unavailable_without_key(self):
        provider = GeminiInsightProvider(settings=GeminiSettings(api_key=None))
        assert provider.is_available() is False

    def test_available_with_model(self):
        provider, _ = _gemini()
        assert provider.is_available() is True
        assert provider.name == ProviderName.GEMINI

    @pytest.mark.asyncio
    async def test_generate(self):
        provider, model = _gemini("```json\n" + json.dumps(GEMINI_JSON) + "\n```")
        request = make_request(
            transactions=[make_transaction(name="Pizza", amount=25, category_id="c1")],
            categories=[{"id": "c1", "name": "Dining"}],
        )

        insight = await provider.generate(request)

        assert insight.summary == "You spent most on food."
        prompt = model.generate_content_async.call_args.args[0]
        assert "Pizza: USD 25.00 (Dining, 2024-01-05)" in prompt
        assert "2024-01-01 to 2024-01-31" in prompt

    @pytest.mark.asyncio
    async def test_try_generate_captures_failure(self):
        provider, model = _gemini()
        model.generate_content_async.side_effect = google_exceptions.ResourceExhausted("quota")

        result = await provider.try_generate(make_request())

        assert result.ok is False
        assert result.quota_exceeded is True
        assert result.provider == ProviderName.GEMINI

    @pytest.mark.asyncio
    async def test_try_generate_captures_bad_json(self):
        provider, _ = _gemini("I cannot help with that")
        result = await provider.try_generate(make_request())
        assert result.ok is False
        assert result.quota_exceeded is False

    @pytest.mark.asyncio
    async def test_generate_without_model_raises(self):
        provider = GeminiInsightProvider(settings=GeminiSettings(api_key=None))
        with pytest.raises(RuntimeError):
            await provider.generate(make_request())


class TestOpenAIAdapter:
    """Tests for OpenAI payload validation and mapping."""

    def test_parse_and_map(self):
        date_range = make_date_range()
        payload = parse_openai_payload(json.dumps(OPENAI_JSON))
        insight = adapt_openai_insights(payload, "u1", date_range)

        assert insight.summary == "You are saving steadily."
        assert insight.highlights == ["Savings: 20% saved", "Food"]
        assert insight.recommendations[0].action == "Open an index fund"
        assert insight.recommendations[0].priority == Priority.MEDIUM
        assert insight.quote == "Do not save what is left after spending."

    def test_priority_normalized(self):
        payload = OpenAIInsightPayload.model_validate(OPENAI_JSON)
        assert payload.highlights[0].priority == Priority.HIGH
        assert payload.highlights[1].priority == Priority.MEDIUM

    def test_empty_quote_uses_tip(self):
        date_range = make_date_range()
        payload = OpenAIInsightPayload.model_validate({**OPENAI_JSON, "quote": ""})
        insight = adapt_openai_insights(payload, "u1", date_range)
        assert insight.quote == select_tip("u1", date_range)

    def test_lists_bounded(self):
        payload = OpenAIInsightPayload.model_validate({
            **OPENAI_JSON,
            "highlights": [{"title": f"h{i}"} for i in range(8)],
            "recommendations": [{"title": f"r{i}"} for i in range(8)],
        })
        insight = adapt_openai_insights(payload, "u1", make_date_range())
        assert len(insight.highlights) == 5
        assert len(insight.recommendations) == 4

    @pytest.mark.parametrize("broken", [
        {**OPENAI_JSON, "summary": 42},
        {**OPENAI_JSON, "quote": None},
        {**OPENAI_JSON, "highlights": "not a list"},
        {k: v for k, v in OPENAI_JSON.items() if k != "recommendations"},
    ])
    def test_invalid_structure(self, broken):
        with pytest.raises(ValidationError):
            parse_openai_payload(json.dumps(broken))

    def test_empty_summary_fails(self):
        payload = OpenAIInsightPayload.model_validate({**OPENAI_JSON, "summary": "  "})
        with pytest.raises(ValueError):
            adapt_openai_insights(payload, "u1", make_date_range())


class TestFinancialData:
    """Tests for the data sent to OpenAI."""

    def test_from_request(self):
        request = make_request(
            transactions=[
                make_transaction(id="1", amount=30, category_id="c1"),
                make_transaction(id="2", amount=20, category_id="c1"),
                make_transaction(id="3", amount=900, type=TransactionType.INCOME),
            ],
            categories=[{"id": "c1", "name": "Food"}],
            aggregates={
                "totalIncome": 900,
                "totalExpenses": 50,
                "netIncome": 850,
                "transactionCount": 3,
                "topCategories": [{"name": "Food", "amount": 50}],
            },
        )
        data = FinancialData.from_request(request)
        assert data.total_expense == 50
        assert data.net_savings == 850
        assert data.categories[0].transaction_count == 2
        assert data.transactions[2].category == "Uncategorized"


class TestOpenAIProvider:
    """Tests for OpenAIInsightProvider."""

    def test_unavailable_without_key(self):
        provider = OpenAIInsightProvider(settings=OpenAISettings(api_key=None))
        assert provider.is_available() is False

    def test_available_with_key(self):
        provider = OpenAIInsightProvider(settings=OpenAISettings(api_key="sk-test"))
        assert provider.is_available() is True

    @pytest.mark.asyncio
    async def test_generate(self):
        provider, client = _openai()
        insight = await provider.generate(make_request())

        assert insight.summary == "You are saving steadily."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-3.5-turbo"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Total Income: USD 1,000.00" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_empty_completion_fails(self):
        provider, _ = _openai(content=None)
        result = await provider.try_generate(make_request())
        assert result.ok is False
        assert "No response" in result.error.message

    @pytest.mark.asyncio
    async def test_quota_error_classified(self):
        provider, _ = _openai(error=StatusError("quota", status_code=429, code="insufficient_quota"))
        result = await provider.try_generate(make_request())
        assert result.quota_exceeded is True
        assert result.error.code == "insufficient_quota"

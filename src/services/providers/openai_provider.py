"""
OpenAI Insight Provider

Second choice in the provider chain. The chat model is given the period's
totals, top categories and transactions, and asked for a JSON document
that already resembles AIInsight (summary, structured highlights,
recommendations with a concrete action, and a quote).

The payload is validated before mapping: summary and quote must be
strings, highlights and recommendations must be lists. Anything else
is a provider failure and the chain moves on.
"""

from typing import Any, Optional

import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from src.config import OpenAISettings, get_settings
from src.insights.tips import select_tip
from src.models.insight import (
    MAX_HIGHLIGHTS,
    MAX_RECOMMENDATIONS,
    AIInsight,
    DateRange,
    InsightRequest,
    Priority,
    ProviderName,
    Recommendation,
    TransactionType,
)
from src.services.providers.base import InsightProvider, extract_json_object


logger = structlog.get_logger("insights.providers.openai")


SYSTEM_PROMPT = """You are a professional financial advisor specializing in personal finance analysis.
You provide insightful, actionable, and personalized advice based on transaction data.

Your responses should be:
- Professional yet approachable
- Data-driven and specific
- Actionable with clear next steps

Always respond with valid JSON in exactly this structure:
{
  "summary": "A 2-3 sentence summary of the financial situation",
  "highlights": [
    {"title": "Brief title", "description": "Detailed explanation", "type": "positive|negative|neutral", "priority": "low|medium|high"}
  ],
  "recommendations": [
    {"title": "Action title", "description": "Why this matters", "action": "Specific action to take", "priority": "low|medium|high"}
  ],
  "quote": "An inspiring financial quote"
}"""


# =============================================================================
# REQUEST PAYLOAD
# =============================================================================

class FinancialDataTransaction(BaseModel):
    type: TransactionType
    amount: float
    category: str
    name: str
    date: str


class FinancialDataCategory(BaseModel):
    name: str
    total_amount: float
    transaction_count: int = 0


class FinancialData(BaseModel):
    """Everything the chat model is told about the period."""

    total_income: float
    total_expense: float
    net_savings: float
    currency: str
    date_range: DateRange
    transactions: list[FinancialDataTransaction] = Field(default_factory=list)
    categories: list[FinancialDataCategory] = Field(default_factory=list)

    @classmethod
    def from_request(cls, request: InsightRequest) -> "FinancialData":
        """Combine the caller's aggregates with their resolved transactions."""
        transactions = [
            FinancialDataTransaction(
                type=txn.type,
                amount=txn.amount,
                category=request.category_name(txn.category_id),
                name=txn.name,
                date=txn.date,
            )
            for txn in request.transactions
        ]

        counts: dict[str, int] = {}
        for txn in transactions:
            if txn.type == TransactionType.EXPENSE:
                counts[txn.category] = counts.get(txn.category, 0) + 1

        aggregates = request.aggregates
        return cls(
            total_income=aggregates.total_income,
            total_expense=aggregates.total_expenses,
            net_savings=aggregates.net_income,
            currency=request.currency,
            date_range=request.date_range,
            transactions=transactions,
            categories=[
                FinancialDataCategory(
                    name=top.name,
                    total_amount=top.amount,
                    transaction_count=counts.get(top.name, 0),
                )
                for top in aggregates.top_categories
            ],
        )


def build_analysis_prompt(data: FinancialData) -> str:
    """User message for the chat completion."""
    income = data.total_income
    savings_rate = data.net_savings / income * 100 if income > 0 else 0.0
    expense_rate = data.total_expense / income * 100 if income > 0 else 0.0
    currency = data.currency

    category_lines = "\n".join(
        f"- {c.name}: {currency} {c.total_amount:,.2f} ({c.transaction_count} transactions)"
        for c in data.categories
    ) or "- None"

    transaction_lines = "\n".join(
        f"- {t.date} {t.type.value} {t.name} ({t.category}): {currency} {t.amount:,.2f}"
        for t in data.transactions[:50]
    ) or "- None provided"

    return f"""Analyze the following financial data and provide comprehensive insights:

PERIOD: {data.date_range.from_date} to {data.date_range.to_date}
CURRENCY: {currency}

FINANCIAL SUMMARY:
- Total Income: {currency} {income:,.2f}
- Total Expenses: {currency} {data.total_expense:,.2f}
- Net Savings: {currency} {data.net_savings:,.2f}
- Savings Rate: {savings_rate:.1f}%
- Expense Rate: {expense_rate:.1f}%

TOP EXPENSE CATEGORIES:
{category_lines}

TRANSACTIONS:
{transaction_lines}

Give 3-5 highlights and 2-4 recommendations, most important first."""


# =============================================================================
# RESPONSE PAYLOAD
# =============================================================================

def _coerce_priority(value: Any) -> Any:
    """Accept any casing; unknown priorities become medium."""
    if isinstance(value, str):
        value = value.strip().lower()
        if value in {p.value for p in Priority}:
            return value
    return Priority.MEDIUM.value


class OpenAIHighlight(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    type: str = "neutral"
    priority: Priority = Priority.MEDIUM

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> Any:
        return _coerce_priority(v)


class OpenAIRecommendation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    description: str = ""
    action: str = ""
    priority: Priority = Priority.MEDIUM

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v: Any) -> Any:
        return _coerce_priority(v)


class OpenAIInsightPayload(BaseModel):
    """OpenAI's native response shape, validated."""
    model_config = ConfigDict(extra="ignore")

    summary: StrictStr
    highlights: list[OpenAIHighlight]
    recommendations: list[OpenAIRecommendation]
    quote: StrictStr


def parse_openai_payload(content: str) -> OpenAIInsightPayload:
    """
    Parse and validate the completion content.

    Raises:
        ValueError: Not a JSON object.
        pydantic.ValidationError: Wrong structure.
    """
    return OpenAIInsightPayload.model_validate(extract_json_object(content))


def adapt_openai_insights(
    payload: OpenAIInsightPayload,
    user_id: str,
    date_range: DateRange,
) -> AIInsight:
    """
    Map an OpenAI payload onto AIInsight.

    Highlights become "Title: description" lines (max 5); recommendations
    keep their action (max 4). An empty quote is replaced by the
    deterministic tip.

    Raises:
        ValueError: If the summary is empty.
    """
    summary = payload.summary.strip()
    if not summary:
        raise ValueError("OpenAI payload has an empty summary")

    highlights = [
        f"{h.title}: {h.description}" if h.description else h.title
        for h in payload.highlights
    ][:MAX_HIGHLIGHTS]

    recommendations = [
        Recommendation(
            title=r.title,
            description=r.description,
            priority=r.priority,
            action=r.action or None,
        )
        for r in payload.recommendations[:MAX_RECOMMENDATIONS]
    ]

    return AIInsight(
        summary=summary,
        highlights=highlights,
        recommendations=recommendations,
        quote=payload.quote.strip() or select_tip(user_id, date_range),
    )


# =============================================================================
# PROVIDER
# =============================================================================

class OpenAIInsightProvider(InsightProvider):
    """
    Insight provider backed by the OpenAI chat completions API.

    Available when an API key is configured (or a client is injected).
    The client's own timeout is the only timeout; there are no retries.
    """

    name = ProviderName.OPENAI

    def __init__(
        self,
        settings: Optional[OpenAISettings] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            settings: OpenAI settings. Defaults to the environment.
            client: Pre-built AsyncOpenAI client (or a stand-in).
        """
        self._settings = settings if settings is not None else get_settings().openai
        self._client = client
        if self._client is None and self._settings.is_configured:
            self._client = AsyncOpenAI(
                api_key=self._settings.api_key,
                timeout=self._settings.request_timeout_seconds,
                max_retries=0,
            )

    def is_available(self) -> bool:
        return self._client is not None

    async def generate(self, request: InsightRequest) -> AIInsight:
        payload = await self.generate_financial_insights(FinancialData.from_request(request))
        return adapt_openai_insights(payload, request.user_id, request.date_range)

    async def generate_financial_insights(self, data: FinancialData) -> OpenAIInsightPayload:
        """
        Ask the chat model for insights on the period.

        Raises:
            RuntimeError: If no client is configured.
            ValueError: If the completion is empty or not JSON.
            openai.APIError: On any API failure (429 for quota).
        """
        if self._client is None:
            raise RuntimeError("OpenAI client not available - API key not configured")

        completion = await self._client.chat.completions.create(
            model=self._settings.model_name,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_analysis_prompt(data)},
            ],
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
            response_format={"type": "json_object"},
        )

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ValueError("No response from OpenAI")

        logger.debug("openai_completion_received", characters=len(content))
        return parse_openai_payload(content)

"""
Gemini Insight Provider

First choice in the provider chain. Gemini is asked for a free-form
spending analysis (insights, recommendations, trends, alerts as plain
strings), which is then mapped onto the canonical AIInsight shape.

The provider is available only when a model was initialized. A missing
API key or a failed initialization disables it without raising; the
orchestrator then skips straight to the next provider.
"""

from typing import Any, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field

from src.config import GeminiSettings, get_settings
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
)
from src.services.providers.base import InsightProvider, extract_json_object


logger = structlog.get_logger("insights.providers.gemini")

# Recommendation priority by position in Gemini's list
POSITION_PRIORITIES = (Priority.HIGH, Priority.MEDIUM, Priority.LOW, Priority.LOW)

TITLE_MAX_WORDS = 6


class GeminiTransaction(BaseModel):
    """Transaction as presented to Gemini: category already resolved to a name."""

    name: str
    amount: float
    category: str
    date: str


class GeminiSpendingAnalysis(BaseModel):
    """Gemini's native response shape."""

    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)
    alerts: list[str] = Field(default_factory=list)


def _split_title(text: str) -> tuple[str, str]:
    """
    Derive (title, description) from a one-line recommendation.

    "Cut dining: cook at home twice a week" -> ("Cut dining", "cook at home ...").
    Without a short lead-in before a colon, the first few words become
    the title and the full text the description.
    """
    head, sep, tail = text.partition(":")
    if sep and tail.strip() and len(head) <= 60:
        return head.strip(), tail.strip()

    words = text.split()
    title = " ".join(words[:TITLE_MAX_WORDS])
    if len(words) > TITLE_MAX_WORDS:
        title += "..."
    return title, text.strip()


def adapt_gemini_analysis(
    analysis: GeminiSpendingAnalysis,
    user_id: str,
    date_range: DateRange,
) -> AIInsight:
    """
    Map a Gemini analysis onto AIInsight.

    - summary: the first insight
    - highlights: remaining insights, then alerts, then trends (max 5)
    - recommendations: one per string, priority by position (max 4)
    - quote: the deterministic tip for this user and period

    Raises:
        ValueError: If Gemini returned no insights at all.
    """
    insights = [text.strip() for text in analysis.insights if text.strip()]
    if not insights:
        raise ValueError("Gemini analysis contained no insights")

    highlights = [
        text.strip()
        for text in [*insights[1:], *analysis.alerts, *analysis.trends]
        if text.strip()
    ][:MAX_HIGHLIGHTS]

    recommendations = []
    texts = [text for text in analysis.recommendations if text.strip()]
    for position, text in enumerate(texts[:MAX_RECOMMENDATIONS]):
        title, description = _split_title(text)
        recommendations.append(Recommendation(
            title=title,
            description=description,
            priority=POSITION_PRIORITIES[position],
        ))

    return AIInsight(
        summary=insights[0],
        highlights=highlights,
        recommendations=recommendations,
        quote=select_tip(user_id, date_range),
    )


class GeminiInsightProvider(InsightProvider):
    """
    Insight provider backed by google-generativeai.

    RESPONSIBILITIES:
    - Present the transactions (with category names) to Gemini
    - Parse the JSON analysis it returns
    - Map it onto AIInsight

    Any failure raises; try_generate() turns it into a ProviderResult.
    """

    name = ProviderName.GEMINI

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        """
        Args:
            settings: Gemini settings. Defaults to the environment.
            model: Pre-built GenerativeModel (or a stand-in with
                generate_content_async). Skips genai configuration.
        """
        self._settings = settings if settings is not None else get_settings().gemini
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    def _configure_genai(self) -> None:
        """Configure Google Generative AI; a failure leaves the provider disabled."""
        try:
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "top_k": 40,
                    "top_p": 0.95,
                    "max_output_tokens": self._settings.max_tokens,
                },
            )
        except Exception as e:
            logger.warning("gemini_init_failed", error=str(e))
            self._model = None

    def is_available(self) -> bool:
        return self._model is not None

    async def generate(self, request: InsightRequest) -> AIInsight:
        transactions = [
            GeminiTransaction(
                name=txn.name,
                amount=txn.amount,
                category=request.category_name(txn.category_id),
                date=txn.date,
            )
            for txn in request.transactions
        ]
        analysis = await self.generate_spending_analysis(
            transactions,
            time_range=request.date_range.label,
            currency=request.currency,
        )
        return adapt_gemini_analysis(analysis, request.user_id, request.date_range)

    async def generate_spending_analysis(
        self,
        transactions: Sequence[GeminiTransaction],
        time_range: str = "last 30 days",
        currency: str = "USD",
    ) -> GeminiSpendingAnalysis:
        """
        Ask Gemini for a spending analysis of the given transactions.

        Raises:
            RuntimeError: If the model is not initialized.
            ValueError: If the response is not the expected JSON.
        """
        if self._model is None:
            raise RuntimeError("Gemini model not initialized")

        if transactions:
            transaction_lines = "\n".join(
                f"{t.name}: {currency} {t.amount:.2f} ({t.category}, {t.date})"
                for t in transactions
            )
        else:
            transaction_lines = "No transactions recorded in this period."

        prompt = f"""You are a personal finance advisor. Analyze these transactions and provide insights.

Time Range: {time_range}
Currency: {currency}
Transactions:
{transaction_lines}

Return ONLY a valid JSON object:
{{"insights": ["Key insights about spending patterns"], "recommendations": ["Actionable recommendations"], "trends": ["Notable trends observed"], "alerts": ["Important alerts or warnings"]}}

Rules:
1. Provide 3-5 insights maximum; the first one is used as the overall summary
2. Give 2-4 actionable recommendations, most important first
3. Identify 2-3 key trends
4. Include any important alerts
5. Be specific and helpful
6. Only return valid JSON, no explanations"""

        response = await self._model.generate_content_async(prompt)
        data = extract_json_object(response.text)
        return GeminiSpendingAnalysis.model_validate(data)

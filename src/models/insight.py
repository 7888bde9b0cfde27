"""
Core Data Models for the Insight Pipeline

These models define the schemas for everything flowing through the
insight pipeline: the incoming request, the pre-reduced aggregates, and
the canonical AIInsight returned to the caller.

Wire names are camelCase (the shape the web client sends and expects);
Python attributes are snake_case. Both spellings are accepted on input.

AIInsight and InsightResponse are FROZEN. A cached value is never mutated:
tagging a response (cached, provider, fallback) always produces a copy.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


MAX_HIGHLIGHTS = 5
MAX_RECOMMENDATIONS = 4

DEFAULT_USER_ID = "current-user"
DEFAULT_CURRENCY = "USD"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class Priority(str, Enum):
    """Recommendation priority, as displayed to the user."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProviderName(str, Enum):
    """AI providers that can author an insight."""
    GEMINI = "gemini"
    OPENAI = "openai"


# =============================================================================
# INPUT MODELS
# =============================================================================

def parse_iso_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 date or datetime string into an aware datetime.

    Accepts a trailing "Z". Naive values are treated as UTC so that
    date-only and full timestamps can be subtracted from each other.

    Raises:
        ValueError: If the string is not ISO-8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Transaction(BaseModel):
    """
    A single transaction as sent by the client.

    Only the fields used for fingerprinting and aggregation are modelled;
    anything else the client sends is ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
        frozen=True,
    )

    id: str
    amount: float
    type: TransactionType
    date: str
    name: str = ""
    category_id: Optional[str] = None


class Category(BaseModel):
    """A user-defined transaction category."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
        frozen=True,
    )

    id: str
    name: str
    type: Optional[str] = None


class TopCategory(BaseModel):
    """One entry of the top-categories list (largest first)."""
    model_config = ConfigDict(frozen=True)

    name: str
    amount: float


class FinancialAggregates(BaseModel):
    """
    Pre-reduced numeric summary of a transaction set.

    net_income is NOT cross-checked against income and expenses;
    callers are responsible for keeping it consistent.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    total_income: float
    total_expenses: float
    net_income: float
    transaction_count: int = Field(..., ge=0)
    top_categories: list[TopCategory] = Field(default_factory=list)
    average_transaction: float = 0.0

    @property
    def top_category(self) -> Optional[TopCategory]:
        """The caller's largest category, if any."""
        return self.top_categories[0] if self.top_categories else None


class DateRange(BaseModel):
    """
    Inclusive reporting window.

    An inverted range is accepted; days_in_range clamps to zero.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_date: str = Field(..., alias="from")
    to_date: str = Field(..., alias="to")

    @field_validator("from_date", "to_date")
    @classmethod
    def validate_iso(cls, v: str) -> str:
        """Both ends must be ISO-8601; the original string is kept verbatim."""
        try:
            parse_iso_timestamp(v)
        except ValueError:
            raise ValueError(f"Not an ISO-8601 date: {v!r}")
        return v

    @property
    def start(self) -> datetime:
        return parse_iso_timestamp(self.from_date)

    @property
    def end(self) -> datetime:
        return parse_iso_timestamp(self.to_date)

    @property
    def days_in_range(self) -> int:
        """Whole days spanned, rounded up, never negative."""
        seconds = (self.end - self.start).total_seconds()
        return max(0, math.ceil(seconds / 86400))

    @property
    def label(self) -> str:
        """Human-readable range, e.g. '2024-01-01 to 2024-01-31'."""
        return f"{self.start.date().isoformat()} to {self.end.date().isoformat()}"


class InsightRequest(BaseModel):
    """
    A validated request for a financial insight.

    Built by the request validator from the raw JSON body.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    aggregates: FinancialAggregates
    date_range: DateRange
    currency: str = DEFAULT_CURRENCY
    user_id: str = DEFAULT_USER_ID
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)

    def category_name(self, category_id: Optional[str]) -> str:
        """Resolve a category id to its display name."""
        if category_id is not None:
            for category in self.categories:
                if category.id == category_id:
                    return category.name
        return "Uncategorized"


class AggregatesRequest(BaseModel):
    """Raw transactions to reduce into FinancialAggregates."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)


# =============================================================================
# OUTPUT MODELS
# =============================================================================

class Recommendation(BaseModel):
    """A single prioritized recommendation."""
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    priority: Priority
    action: Optional[str] = None


class AIInsight(BaseModel):
    """
    Canonical insight shape, regardless of which generator produced it.

    Lists are bounded: at most 5 highlights and 4 recommendations.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    summary: str
    highlights: list[str] = Field(default_factory=list, max_length=MAX_HIGHLIGHTS)
    recommendations: list[Recommendation] = Field(
        default_factory=list,
        max_length=MAX_RECOMMENDATIONS,
    )
    quote: str


class InsightResponse(AIInsight):
    """
    An AIInsight plus provenance tags.

    This is both the cache value and the HTTP response body.
    Tags that are not set are omitted from the wire format.
    """

    cached: Optional[bool] = None
    ai_powered: Optional[bool] = None
    provider: Optional[ProviderName] = None
    fallback: Optional[bool] = None
    error: Optional[str] = None

    @classmethod
    def from_insight(cls, insight: AIInsight, **tags: Any) -> "InsightResponse":
        """Wrap a plain insight with provenance tags."""
        return cls(
            summary=insight.summary,
            highlights=list(insight.highlights),
            recommendations=list(insight.recommendations),
            quote=insight.quote,
            **tags,
        )

    def to_response_body(self) -> dict:
        """Serialize for the HTTP response (camelCase, unset tags dropped)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

"""
Rule-Based Insight Synthesizer

Deterministic, explainable insight generation from aggregates alone.
It is the last step of the provider chain and the recovery path when
anything else in the pipeline fails, so it must work for every valid
set of aggregates: every division is guarded and every list is bounded.

The output is threshold-driven, not "smart":
- Summary: multi-line narrative of totals, cash flow, projections,
  top category and savings rate
- Highlights: up to 5 one-line status observations
- Recommendations: up to 4, produced by fixed-precedence rules and
  returned in generation order (NOT sorted by priority)
- Quote: the deterministic tip for this user and period
"""

from functools import partial
from typing import Optional

from pydantic import BaseModel

from src.insights.tips import select_tip
from src.models.insight import (
    MAX_HIGHLIGHTS,
    MAX_RECOMMENDATIONS,
    AIInsight,
    DateRange,
    FinancialAggregates,
    Priority,
    Recommendation,
    TopCategory,
)


# Savings-rate bands (percent of income)
EXCELLENT_SAVINGS_RATE = 20.0
GOOD_SAVINGS_RATE = 10.0

# Top-category share bands (percent of expenses)
HIGH_CONCENTRATION_SHARE = 40.0
PRIMARY_CATEGORY_SHARE = 25.0
DOMINANT_CATEGORY_SHARE = 50.0
MANAGE_CATEGORY_SHARE = 35.0

PROJECTION_DAYS = 30


class InsightMetrics(BaseModel):
    """Figures derived from aggregates and the date range."""

    days_in_range: int
    savings_rate: float
    daily_spending: float
    daily_income: float
    monthly_projection: float
    transactions_per_day: float
    top_category: Optional[TopCategory] = None
    top_category_share: float = 0.0
    income_utilization: Optional[float] = None


def compute_metrics(
    aggregates: FinancialAggregates,
    date_range: DateRange,
) -> InsightMetrics:
    """Derive rates and projections; zero denominators yield zero."""
    days = date_range.days_in_range
    income = aggregates.total_income
    expenses = aggregates.total_expenses

    savings_rate = aggregates.net_income / income * 100 if income else 0.0
    daily_spending = expenses / days if days > 0 else 0.0
    daily_income = income / days if days > 0 else 0.0

    top = aggregates.top_category
    share = top.amount / expenses * 100 if top and expenses else 0.0

    return InsightMetrics(
        days_in_range=days,
        savings_rate=savings_rate,
        daily_spending=daily_spending,
        daily_income=daily_income,
        monthly_projection=daily_spending * PROJECTION_DAYS,
        transactions_per_day=aggregates.transaction_count / max(days, 1),
        top_category=top,
        top_category_share=share,
        income_utilization=expenses / income * 100 if income > 0 else None,
    )


def format_money(amount: float, currency: str) -> str:
    """
    Format an amount for display.

    ISO codes are separated by a space ("USD 1,200.00"); symbols are
    prefixed directly ("$1,200.00").
    """
    sign = "-" if amount < 0 else ""
    magnitude = f"{abs(amount):,.2f}"
    if len(currency) == 3 and currency.isalpha():
        return f"{sign}{currency.upper()} {magnitude}"
    return f"{sign}{currency}{magnitude}"


# =============================================================================
# SUMMARY
# =============================================================================

def build_summary(
    aggregates: FinancialAggregates,
    date_range: DateRange,
    currency: str,
    metrics: InsightMetrics,
) -> str:
    """Multi-line narrative of the period."""
    money = partial(format_money, currency=currency)
    days = metrics.days_in_range
    net = aggregates.net_income

    lines = [
        f"Financial summary for {date_range.label} ({days} day{'' if days == 1 else 's'}):",
        f"Income: {money(aggregates.total_income)}",
        f"Expenses: {money(aggregates.total_expenses)}",
        f"Net income: {money(net)}",
    ]

    if net > 0:
        lines.append(f"Positive cash flow: you kept {money(net)} of what you earned.")
    elif net < 0:
        lines.append(f"Negative cash flow: you spent {money(-net)} more than you earned.")
    else:
        lines.append("Break-even: your spending exactly matched your income.")

    count = aggregates.transaction_count
    lines.append(f"You made {count} transaction{'' if count == 1 else 's'}.")
    lines.append(f"Average transaction: {money(aggregates.average_transaction)}")

    if days > 1:
        lines.append(
            f"Daily spending averaged {money(metrics.daily_spending)}, "
            f"projecting to about {money(metrics.monthly_projection)} over {PROJECTION_DAYS} days."
        )

    top = metrics.top_category
    if top:
        share = metrics.top_category_share
        callout = (
            f"Top spending category: {top.name} at {money(top.amount)} "
            f"({share:.1f}% of expenses)"
        )
        if share > HIGH_CONCENTRATION_SHARE:
            callout += " - an unusually high concentration of spending."
        elif share > PRIMARY_CATEGORY_SHARE:
            callout += " - your primary spending category."
        else:
            callout += "."
        lines.append(callout)

    rate = metrics.savings_rate
    if rate > EXCELLENT_SAVINGS_RATE:
        lines.append(
            f"Excellent savings rate of {rate:.1f}% - well above the recommended 20%."
        )
    elif rate > GOOD_SAVINGS_RATE:
        lines.append(
            f"Good savings rate of {rate:.1f}% - aim for 20% to build wealth faster."
        )
    elif rate > 0:
        lines.append(
            f"Low savings rate of {rate:.1f}% - this needs improvement; target at least 10%."
        )
    else:
        lines.append(
            f"No savings this period ({rate:.1f}%) - urgent attention needed "
            f"to bring spending below income."
        )

    return "\n".join(lines)


# =============================================================================
# HIGHLIGHTS
# =============================================================================

def build_highlights(
    aggregates: FinancialAggregates,
    currency: str,
    metrics: InsightMetrics,
) -> list[str]:
    """Up to 5 one-line observations, in fixed order."""
    money = partial(format_money, currency=currency)
    highlights: list[str] = []

    rate = metrics.savings_rate
    if rate > EXCELLENT_SAVINGS_RATE:
        highlights.append(f"Excellent savings rate: {rate:.1f}% of income saved")
    elif rate > GOOD_SAVINGS_RATE:
        highlights.append(f"Good savings rate: {rate:.1f}% of income saved")
    elif rate > 0:
        highlights.append(
            f"Low savings rate: only {rate:.1f}% of income saved - needs improvement"
        )
    else:
        highlights.append("No savings this period - spending matched or exceeded income")

    per_day = metrics.transactions_per_day
    if per_day > 3:
        highlights.append(f"High transaction frequency: {per_day:.1f} transactions per day")
    elif per_day > 1:
        highlights.append(f"Moderate transaction frequency: {per_day:.1f} transactions per day")
    else:
        highlights.append(f"Low transaction frequency: {per_day:.1f} transactions per day")

    top = metrics.top_category
    if top:
        share = metrics.top_category_share
        if share > HIGH_CONCENTRATION_SHARE:
            highlights.append(f"{top.name} dominates spending at {share:.1f}% of expenses")
        elif share > PRIMARY_CATEGORY_SHARE:
            highlights.append(
                f"{top.name} is your primary spending category ({share:.1f}% of expenses)"
            )
        else:
            highlights.append(
                f"Spending is well spread: {top.name}, the largest category, "
                f"is {share:.1f}% of expenses"
            )

    if metrics.days_in_range > 1:
        daily = metrics.daily_spending
        if daily > metrics.daily_income * 0.8:
            highlights.append(
                f"High spending velocity: {money(daily)} per day, over 80% of daily income"
            )
        elif daily > metrics.daily_income * 0.5:
            highlights.append(
                f"Moderate spending velocity: {money(daily)} per day, 50-80% of daily income"
            )
        else:
            highlights.append(
                f"Healthy spending velocity: {money(daily)} per day, under half of daily income"
            )

    average = aggregates.average_transaction
    if average > 100:
        highlights.append(f"High average transaction value of {money(average)}")
    elif average > 50:
        highlights.append(f"Moderate average transaction value of {money(average)}")
    else:
        highlights.append(f"Small average transaction value of {money(average)}")

    return highlights[:MAX_HIGHLIGHTS]


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

DEFAULT_RECOMMENDATIONS = (
    Recommendation(
        title="Set a Monthly Budget",
        description=(
            "Give each spending category a monthly limit and check your "
            "progress against it every week."
        ),
        priority=Priority.MEDIUM,
    ),
    Recommendation(
        title="Review Spending Categories",
        description=(
            "Look through your categories for recurring costs you no longer "
            "need and small purchases that add up."
        ),
        priority=Priority.LOW,
    ),
)


def build_recommendations(
    aggregates: FinancialAggregates,
    currency: str,
    metrics: InsightMetrics,
) -> list[Recommendation]:
    """
    Threshold rules in fixed precedence; the first 4 that fire are kept.

    Precedence: negative cash flow, top-category concentration, savings
    rate, transaction volume, transaction size, income utilization,
    emergency fund. Falls back to two generic recommendations when no
    rule fires.
    """
    money = partial(format_money, currency=currency)
    recommendations: list[Recommendation] = []
    net = aggregates.net_income
    expenses = aggregates.total_expenses
    rate = metrics.savings_rate

    # 1. Negative cash flow
    if net < 0:
        deficit = -net
        days = metrics.days_in_range
        projected = deficit / days * PROJECTION_DAYS if days > 0 else deficit
        target = deficit * 1.2
        recommendations.append(Recommendation(
            title="Address Negative Cash Flow",
            description=(
                f"You spent {money(deficit)} more than you earned this period. "
                f"At this pace the deficit reaches about {money(projected)} over "
                f"{PROJECTION_DAYS} days. Aim to cut expenses by {money(target)} "
                f"to get back to positive cash flow with a margin."
            ),
            priority=Priority.HIGH,
        ))

    # 2. Top-category concentration
    top = metrics.top_category
    share = metrics.top_category_share
    if top and share > DOMINANT_CATEGORY_SHARE:
        recommendations.append(Recommendation(
            title="Dominant Spending Category",
            description=(
                f"{top.name} accounts for {share:.1f}% of your expenses "
                f"({money(top.amount)}). Review every recurring cost in this "
                f"category and look for cheaper alternatives."
            ),
            priority=Priority.HIGH,
        ))
    elif top and share >= MANAGE_CATEGORY_SHARE:
        recommendations.append(Recommendation(
            title="Manage Top Category",
            description=(
                f"{top.name} takes {share:.1f}% of your expenses. Cap it at "
                f"{money(top.amount * 0.8)} per period, 20% below current spending."
            ),
            priority=Priority.HIGH,
        ))

    # 3. Savings rate (only meaningful with positive cash flow)
    if net > 0:
        if rate < 5:
            recommendations.append(Recommendation(
                title="Increase Savings Urgently",
                description=(
                    f"You are saving only {rate:.1f}% of your income. Cutting "
                    f"{money(expenses * 0.15)} (15%) from expenses would "
                    f"substantially raise your savings."
                ),
                priority=Priority.HIGH,
            ))
        elif rate < 15:
            recommendations.append(Recommendation(
                title="Improve Savings Rate",
                description=(
                    f"Your savings rate is {rate:.1f}%. Trimming "
                    f"{money(expenses * 0.10)} (10%) from expenses moves you "
                    f"toward the recommended 20%."
                ),
                priority=Priority.MEDIUM,
            ))
        elif rate >= 20:
            recommendations.append(Recommendation(
                title="Optimize Savings",
                description=(
                    f"With a {rate:.1f}% savings rate, put your {money(net)} "
                    f"surplus to work: top up your emergency fund first, then "
                    f"consider investing the rest."
                ),
                priority=Priority.LOW,
            ))

    # 4. Transaction volume
    if aggregates.transaction_count > 100:
        recommendations.append(Recommendation(
            title="Optimize Transaction Patterns",
            description=(
                f"You made {aggregates.transaction_count} transactions this period. "
                f"Consolidating small purchases into planned trips reduces "
                f"impulse spending."
            ),
            priority=Priority.MEDIUM,
        ))

    # 5. Transaction size
    if aggregates.average_transaction > 200:
        recommendations.append(Recommendation(
            title="Review High-Value Transactions",
            description=(
                f"Your average transaction is {money(aggregates.average_transaction)}. "
                f"Check large purchases for ones that could be deferred, "
                f"downsized or negotiated."
            ),
            priority=Priority.MEDIUM,
        ))

    # 6. Income utilization
    utilization = metrics.income_utilization
    if utilization is not None and utilization > 90:
        recommendations.append(Recommendation(
            title="Income Growth Opportunity",
            description=(
                f"Expenses consume {utilization:.1f}% of your income. Alongside "
                f"cutting costs, look for ways to grow income such as a raise, "
                f"freelance work or selling unused items."
            ),
            priority=Priority.MEDIUM,
        ))

    # 7. Emergency fund
    if net > 0 and rate > 10:
        recommendations.append(Recommendation(
            title="Build Emergency Fund",
            description=(
                f"Build toward an emergency fund of {money(expenses * 6)}, "
                f"six times this period's expenses, before increasing "
                f"discretionary spending."
            ),
            priority=Priority.MEDIUM,
        ))

    if not recommendations:
        recommendations.extend(DEFAULT_RECOMMENDATIONS)

    return recommendations[:MAX_RECOMMENDATIONS]


# =============================================================================
# ENTRY POINT
# =============================================================================

def synthesize(
    aggregates: FinancialAggregates,
    date_range: DateRange,
    currency: str,
    user_id: str,
) -> AIInsight:
    """Build a complete insight from aggregates alone. Pure and deterministic."""
    metrics = compute_metrics(aggregates, date_range)
    return AIInsight(
        summary=build_summary(aggregates, date_range, currency, metrics),
        highlights=build_highlights(aggregates, currency, metrics),
        recommendations=build_recommendations(aggregates, currency, metrics),
        quote=select_tip(user_id, date_range),
    )


class RuleBasedSynthesizer:
    """
    Injectable wrapper around synthesize().

    The orchestrator and request handler hold an instance so that the
    fallback step can be substituted in tests.
    """

    def synthesize(
        self,
        aggregates: FinancialAggregates,
        date_range: DateRange,
        currency: str,
        user_id: str,
    ) -> AIInsight:
        return synthesize(aggregates, date_range, currency, user_id)

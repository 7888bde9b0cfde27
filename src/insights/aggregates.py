"""
Aggregate Builder

Reduces a raw transaction list into FinancialAggregates:
totals, net income, count, average, and the top 5 expense categories.

The insight endpoint normally receives aggregates precomputed by the
client; this builder is what the client-side reduction does, offered
server-side for callers that only hold raw transactions.
"""

from collections import defaultdict
from typing import Iterable

from src.models.insight import (
    Category,
    FinancialAggregates,
    TopCategory,
    Transaction,
    TransactionType,
)


TOP_CATEGORY_LIMIT = 5
UNCATEGORIZED = "Uncategorized"


def build_aggregates(
    transactions: Iterable[Transaction],
    categories: Iterable[Category] = (),
) -> FinancialAggregates:
    """
    Reduce transactions into FinancialAggregates.

    Args:
        transactions: Income and expense transactions for the period.
        categories: Category list used to resolve category_id to a name.

    Returns:
        Aggregates with top_categories limited to the 5 largest expense
        categories by summed amount, descending. Expenses whose category
        is unknown are grouped under "Uncategorized".
    """
    transactions = list(transactions)
    names = {category.id: category.name for category in categories}

    total_income = 0.0
    total_expenses = 0.0
    by_category: dict[str, float] = defaultdict(float)

    for txn in transactions:
        if txn.type == TransactionType.INCOME:
            total_income += txn.amount
        else:
            total_expenses += txn.amount
            name = names.get(txn.category_id, UNCATEGORIZED) if txn.category_id else UNCATEGORIZED
            by_category[name] += txn.amount

    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)
    top_categories = [
        TopCategory(name=name, amount=amount)
        for name, amount in ranked[:TOP_CATEGORY_LIMIT]
    ]

    count = len(transactions)
    average = (total_income + total_expenses) / count if count else 0.0

    return FinancialAggregates(
        total_income=total_income,
        total_expenses=total_expenses,
        net_income=total_income - total_expenses,
        transaction_count=count,
        top_categories=top_categories,
        average_transaction=average,
    )

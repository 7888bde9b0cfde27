"""
Content Fingerprints

A fingerprint is the cache-invalidation unit: a deterministic string
built from every transaction's identifying fields plus the aggregate
totals. Any change to a transaction's id, amount, type, date or name,
or any drift in the aggregates, yields a different fingerprint and
therefore a cache miss.

This is a correctness property, not a security one.
"""

from typing import Sequence

from src.models.insight import FinancialAggregates, Transaction


NO_TRANSACTIONS = "no-transactions"


def _format_number(value: float) -> str:
    """
    Render a number without losing precision.

    Integral values drop the trailing ".0" (100.0 -> "100"); everything
    else uses repr so that distinct amounts never render the same.
    """
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def transaction_fingerprint(transactions: Sequence[Transaction]) -> str:
    """
    Fingerprint of the transaction list.

    Returns "no-transactions" for an empty list, otherwise each
    transaction's "id-amount-type-date-name" joined with "|".
    """
    if not transactions:
        return NO_TRANSACTIONS
    return "|".join(
        f"{txn.id}-{_format_number(txn.amount)}-{txn.type.value}-{txn.date}-{txn.name}"
        for txn in transactions
    )


def aggregate_fingerprint(aggregates: FinancialAggregates) -> str:
    """Fingerprint of the four aggregate totals."""
    return "-".join([
        _format_number(aggregates.total_income),
        _format_number(aggregates.total_expenses),
        _format_number(aggregates.net_income),
        str(aggregates.transaction_count),
    ])


def full_fingerprint(
    transactions: Sequence[Transaction],
    aggregates: FinancialAggregates,
) -> str:
    """Transactions and aggregates together; this is what the cache key uses."""
    return f"{transaction_fingerprint(transactions)}-{aggregate_fingerprint(aggregates)}"

"""
Insight Computation Package

Pure, deterministic building blocks of the insight pipeline:
aggregation, fingerprinting, tip selection and rule-based synthesis.
Nothing in this package performs I/O.
"""

from src.insights.aggregates import build_aggregates
from src.insights.fingerprint import (
    NO_TRANSACTIONS,
    aggregate_fingerprint,
    full_fingerprint,
    transaction_fingerprint,
)
from src.insights.synthesizer import (
    InsightMetrics,
    RuleBasedSynthesizer,
    compute_metrics,
    format_money,
    synthesize,
)
from src.insights.tips import EXPENSE_TIPS, rolling_hash, select_tip

__all__ = [
    # Aggregation
    "build_aggregates",
    # Fingerprints
    "NO_TRANSACTIONS",
    "aggregate_fingerprint",
    "full_fingerprint",
    "transaction_fingerprint",
    # Synthesis
    "InsightMetrics",
    "RuleBasedSynthesizer",
    "compute_metrics",
    "format_money",
    "synthesize",
    # Tips
    "EXPENSE_TIPS",
    "rolling_hash",
    "select_tip",
]

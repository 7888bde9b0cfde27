"""
Financial Insights Service - Source Package

Turns a user's transactions for a period into a short financial
analysis: summary, highlights, prioritized recommendations and a tip.

DESIGN PRINCIPLES:
1. A valid request always gets an answer
2. AI providers are optional; rule-based synthesis is always there
3. Same inputs, same cache entry, same tip
4. Every step must be auditable
5. Providers, cache and audit storage are swappable
"""

__version__ = "1.0.0"
__author__ = "Financial Insights Team"

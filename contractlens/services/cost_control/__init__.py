"""
Cost Control Services

Per-extraction token budget tracking for Claude Vision OCR usage.
"""

from .token_budget import TOKENS_PER_PAGE_ESTIMATE, TokenBudgetTracker

__all__ = [
    "TOKENS_PER_PAGE_ESTIMATE",
    "TokenBudgetTracker",
]

"""
Token Budget Tracker

Per-extraction token budget for Claude Vision OCR calls. Each extraction
gets a fresh tracker (default 100K tokens from settings). OCR work is
estimated per page before a call is made; actual usage is recorded from
the API response afterwards.
"""

from typing import Optional

import structlog

from contractlens.config import settings

logger = structlog.get_logger(__name__)


# Claude Vision cost of one image or PDF page, prompt and transcript included
TOKENS_PER_PAGE_ESTIMATE = 2000


class TokenBudgetTracker:
    """
    Token accounting for one extraction call.

    Usage:
        tracker = TokenBudgetTracker()
        if tracker.fits_pages(30):
            response = claude_client.messages.create(...)
            tracker.add_usage(response.usage.input_tokens, response.usage.output_tokens)
    """

    def __init__(self, max_tokens: Optional[int] = None):
        self.max_tokens = max_tokens or settings.max_ocr_tokens_per_extraction
        self.input_tokens = 0
        self.output_tokens = 0

    @property
    def used_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @staticmethod
    def estimate_pages(pages: int) -> int:
        """Estimated OCR tokens for a page count (at least one page)."""
        return max(1, pages) * TOKENS_PER_PAGE_ESTIMATE

    def check_budget(self, estimated_tokens: int) -> bool:
        """True if an operation of estimated_tokens still fits."""
        would_fit = self.used_tokens + estimated_tokens <= self.max_tokens
        if not would_fit:
            logger.warning(
                "ocr_budget_exceeded",
                estimated=estimated_tokens,
                used=self.used_tokens,
                max_tokens=self.max_tokens,
            )
        return would_fit

    def fits_pages(self, pages: int) -> bool:
        return self.check_budget(self.estimate_pages(pages))

    def add_usage(self, input_tokens: int, output_tokens: int) -> None:
        """Record usage from response.usage of a completed call."""
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        logger.debug(
            "ocr_usage_recorded",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_used=self.used_tokens,
            remaining=self.remaining(),
        )

    def remaining(self) -> int:
        return max(0, self.max_tokens - self.used_tokens)

    def __repr__(self) -> str:
        return (
            f"TokenBudgetTracker(used={self.used_tokens}, "
            f"max={self.max_tokens}, remaining={self.remaining()})"
        )

"""
Circuit Breaker for the OCR Service

Opens after consecutive Claude Vision failures so uploads fail fast while
the service is down, then lets a trial call through after the reset timeout.

Only service-side failures count toward opening the circuit. 4xx responses
(bad request, billing exhausted, auth) describe the caller's request or
account, so they pass through without tripping it; 429 still counts.
"""

import threading
from typing import Optional

import anthropic
import pybreaker
import structlog

from contractlens.config import settings

logger = structlog.get_logger(__name__)


def is_caller_error(exc: BaseException) -> bool:
    """True for 4xx responses other than 429."""
    if not isinstance(exc, anthropic.APIStatusError):
        return False
    return 400 <= exc.status_code < 500 and exc.status_code != 429


class CircuitBreakerLogListener(pybreaker.CircuitBreakerListener):
    """Emits an event per counted failure and per state change."""

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException):
        logger.warning(
            "ocr_breaker_failure_counted",
            breaker=cb.name,
            fail_count=cb.fail_counter,
            fail_max=cb.fail_max,
            error_type=type(exc).__name__,
        )

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state):
        log = logger.error if new_state.name == pybreaker.STATE_OPEN else logger.warning
        log(
            "ocr_breaker_state_changed",
            breaker=cb.name,
            old_state=old_state.name if old_state else None,
            new_state=new_state.name,
        )


def create_ocr_breaker(
    fail_max: Optional[int] = None,
    reset_timeout: Optional[int] = None,
) -> pybreaker.CircuitBreaker:
    """
    Build an OCR circuit breaker.

    Args:
        fail_max: Consecutive counted failures before opening
                  (default settings.circuit_breaker_fail_max)
        reset_timeout: Seconds before a trial call is allowed
                       (default settings.circuit_breaker_reset_timeout)
    """
    return pybreaker.CircuitBreaker(
        name="claude_ocr",
        fail_max=fail_max or settings.circuit_breaker_fail_max,
        reset_timeout=reset_timeout or settings.circuit_breaker_reset_timeout,
        exclude=[is_caller_error],
        listeners=[CircuitBreakerLogListener()],
    )


# Module-level instance (lazy initialization)
_ocr_breaker: Optional[pybreaker.CircuitBreaker] = None
_breaker_lock = threading.Lock()


def get_ocr_breaker() -> pybreaker.CircuitBreaker:
    """Shared OCR breaker, created on first access."""
    global _ocr_breaker

    if _ocr_breaker is None:
        with _breaker_lock:
            if _ocr_breaker is None:
                _ocr_breaker = create_ocr_breaker()
                logger.info("ocr_breaker_initialized", fail_max=_ocr_breaker.fail_max)
    return _ocr_breaker


def reset_breakers() -> None:
    """Drop breaker state (tests, operational reset)."""
    global _ocr_breaker

    with _breaker_lock:
        _ocr_breaker = None


CircuitBreakerError = pybreaker.CircuitBreakerError

__all__ = [
    "create_ocr_breaker",
    "get_ocr_breaker",
    "reset_breakers",
    "is_caller_error",
    "CircuitBreakerError",
    "CircuitBreakerLogListener",
]

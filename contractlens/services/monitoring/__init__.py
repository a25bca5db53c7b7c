"""
Monitoring Module
Exports for structured logging and circuit breakers
"""

from contractlens.services.monitoring.logging import (
    setup_logging,
    configure_structlog,
    CorrelationJsonFormatter,
)
from contractlens.services.monitoring.circuit_breakers import (
    create_ocr_breaker,
    get_ocr_breaker,
    is_caller_error,
    reset_breakers,
    CircuitBreakerError,
    CircuitBreakerLogListener,
)

__all__ = [
    "setup_logging",
    "configure_structlog",
    "CorrelationJsonFormatter",
    "create_ocr_breaker",
    "get_ocr_breaker",
    "is_caller_error",
    "reset_breakers",
    "CircuitBreakerError",
    "CircuitBreakerLogListener",
]

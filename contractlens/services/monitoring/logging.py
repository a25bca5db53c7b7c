"""
Structured JSON Logging with Correlation ID
Provides JSON formatter that automatically injects correlation IDs into all log entries
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger
from asgi_correlation_id.context import correlation_id

from contractlens.config import settings


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with automatic correlation ID injection.

    Extends python-json-logger to add correlation_id field to every log record.
    The correlation ID is retrieved from async context (set by CorrelationIdMiddleware).
    """

    def add_fields(self, log_record, record, message_dict):
        """
        Add custom fields to log record.

        Adds:
        - correlation_id: From async context or 'none' if not available
        - service: Application name for multi-service environments
        - environment: Deployment environment (development/production)
        """
        super().add_fields(log_record, record, message_dict)

        log_record['correlation_id'] = correlation_id.get() or 'none'
        log_record['service'] = settings.service_name
        log_record['environment'] = settings.environment


def add_correlation_id(logger, method_name, event_dict):
    """structlog processor: attach the request correlation ID."""
    event_dict.setdefault('correlation_id', correlation_id.get() or 'none')
    return event_dict


def configure_structlog():
    """
    Configure structlog to render JSON event lines.

    Service loggers use structlog.get_logger(__name__) with event-style names
    (e.g. "pdf_truncated"); this gives them the same timestamp/level/
    correlation_id fields as stdlib records.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            add_correlation_id,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ]
    )


def setup_logging():
    """
    Configure structured JSON logging to stdout.

    Sets up root logger with:
    - CorrelationJsonFormatter for machine-parseable JSON output
    - INFO level logging (production default)
    - StreamHandler outputting to stdout

    Returns:
        logging.Handler: The configured handler (for testing)
    """
    handler = logging.StreamHandler(sys.stdout)

    formatter = CorrelationJsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={
            'asctime': 'timestamp',
            'levelname': 'level'
        }
    )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    configure_structlog()

    return handler

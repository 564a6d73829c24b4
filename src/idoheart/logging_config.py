"""Logging configuration."""

import logging
import sys

import structlog

from idoheart.settings import Settings, settings as default_settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging."""
    settings = settings or default_settings

    # Configure processors based on format
    if settings.log_format == "json":
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    level = getattr(logging, settings.log_level)
    if not settings.is_logging:
        level = logging.CRITICAL

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, silenced: bool = False) -> structlog.BoundLogger:
    """Get a logger instance.

    A silenced logger drops every event below CRITICAL regardless of the
    global configuration.
    """
    if silenced:
        return structlog.wrap_logger(
            None,
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
            logger_name=name,
        )
    return structlog.get_logger(name)

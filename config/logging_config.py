"""Structured JSON logging configuration using structlog."""

import logging
import sys

import structlog

_configured_level: str | None = None


def configure_logging(component: str, level: str = "INFO") -> structlog.BoundLogger:
    """Configure structlog once per level and return a logger bound to the component.

    Every pipeline component calls this from its constructor; repeated calls
    with the same level reuse the existing configuration.
    """
    global _configured_level
    if _configured_level != level.upper():
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.processors.format_exc_info,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(
                getattr(logging, level.upper(), logging.INFO)
            ),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
            cache_logger_on_first_use=True,
        )
        _configured_level = level.upper()
    return structlog.get_logger(component=component)

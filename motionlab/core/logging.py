"""Structured logging for the scoring engine and its tools.

Log events go to stderr so that command output on stdout (reports, JSON
documents) stays machine readable.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog

from motionlab.config.settings import get_settings

settings = get_settings()


def _default_level() -> int:
    return logging.DEBUG if settings.debug else logging.INFO


def configure_logging(level: Optional[int] = None, stream: Optional[TextIO] = None):
    """Configure structured logging with structlog.

    Args:
        level: Minimum level; DEBUG when ``settings.debug`` is set, else INFO
        stream: Where log lines are written; defaults to ``sys.stderr``
    """
    level = _default_level() if level is None else level
    stream = sys.stderr if stream is None else stream

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=level,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    return structlog.get_logger(name)


def add_log_context(**kwargs: Any) -> None:
    """Bind catalog/motion identifiers to every following log entry."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    """Clear all log context."""
    structlog.contextvars.clear_contextvars()

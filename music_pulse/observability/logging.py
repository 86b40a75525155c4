"""
Structured logging configuration using structlog.

Production emits JSON lines for log aggregators; development gets the
colored console renderer. Context such as ``owner_id`` or ``cycle_id``
can be bound once and appears on every subsequent event.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from music_pulse.config.settings import get_settings


def setup_logging(level: str | None = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Override for the configured log level (e.g. "DEBUG")

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Track refreshed", track_id="trk_1", views=1200)
    """
    settings = get_settings()
    log_level = (level or settings.log_level).upper()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (library modules) through the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level, logging.INFO),
    )

    # Quiet chatty dependencies
    for noisy in ("httpx", "httpcore", "asyncio", "asyncpg"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to ``name``."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables to all subsequent log messages.

    Args:
        **kwargs: Key-value pairs to bind (e.g. owner_id, cycle_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()

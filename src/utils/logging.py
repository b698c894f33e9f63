# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Every event carries the deployment environment. Development renders
colored console lines; other environments emit one JSON object per line.
Store and cache drivers are held at WARNING so per-query chatter from
partition fan-out stays out of the log.

Example:
    >>> from src.utils.logging import setup_logging, get_logger
    >>> from src.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("Partition computed", partition_key="subject:math", total_count=42)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from src.core.config.settings import Settings

# Driver loggers held at WARNING
QUIET_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "alembic",
    "asyncpg",
    "aiosqlite",
    "redis",
    "asyncio",
)


def environment_processor(environment: str) -> Processor:
    """Processor stamping the deployment environment on each event."""

    def add_environment(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_environment


def build_processors(settings: "Settings") -> list[Processor]:
    """Processor chain for the configured environment."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        environment_processor(settings.environment),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.debug:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    return processors


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the engine.

    Args:
        settings: Application settings containing log_level, debug flag
            and environment.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Plain stdlib output, used by the migration runner
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind fields to every later log call in this context.

    Example:
        >>> bind_context(request_id="abc-123", class_id="class-7b")
        >>> logger.info("Computing class analytics")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop fields bound with bind_context."""
    structlog.contextvars.clear_contextvars()

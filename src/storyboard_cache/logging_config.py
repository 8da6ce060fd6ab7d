"""Structured logging setup.

All components log through ``structlog.get_logger(__name__)``. Request
handlers bind a ``request_id`` into the contextvars context so every line
emitted while serving a request (and every background task spawned from it)
carries the correlation id.
"""

import logging
import sys

import structlog

from storyboard_cache.config import Settings, settings


def configure_logging(config: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        config: Settings to read level/format from. Defaults to global settings.
    """
    config = config or settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.log_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        # the console renderer prints tracebacks itself
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

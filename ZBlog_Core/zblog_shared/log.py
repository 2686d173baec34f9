"""Structured logging setup.

Call configure_logging() once at process start (API lifespan, prototype).
Modules log through structlog.get_logger(__name__) with snake_case events:

    logger.info("post_created", post_id="3", content_stored=True)
"""

import logging

import structlog
from structlog.typing import Processor

from ZBlog_Core.zblog_shared import config


def _get_log_level(level_name: str | None = None) -> int:
    name = (level_name or config.LOG_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


def configure_logging(environment: str | None = None, level: str | None = None) -> None:
    """JSON lines in production, colored console output otherwise."""
    environment = environment or config.LOG_ENVIRONMENT

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_get_log_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

"""
Structured logging for wikifeed.

Usage:
    from wikifeed.logging_config import configure_logging, get_logger

    # once, at application startup
    configure_logging()

    logger = get_logger(__name__)
    logger.info('Feed cache stored', key=key)
"""

import logging
import os
import sys

import structlog
from structlog.types import Processor


def _is_production() -> bool:
    env = os.getenv('ENV', os.getenv('ENVIRONMENT', 'development')).lower()
    return env in ('production', 'prod')


def _get_log_level() -> int:
    level_name = os.getenv('LOG_LEVEL', 'INFO').upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(
    json_format: bool | None = None, log_level: int | None = None
) -> None:
    """
    Configure structlog and route standard library logging through it.

    Console output is colored in development and JSON in production,
    unless `json_format` says otherwise.
    """
    if json_format is None:
        json_format = _is_production()
    if log_level is None:
        log_level = _get_log_level()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.format_exc_info,
    ]

    renderer: Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer, foreign_pre_chain=shared_processors
        )
    )
    logging.basicConfig(format='%(message)s', handlers=[handler], level=log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

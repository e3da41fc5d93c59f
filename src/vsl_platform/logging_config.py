"""
Structured logging configuration using structlog.

Events are snake_case with key/value context (``stage``, ``entry_id``,
``attempt``, ``reason``). Vietnamese text is rendered unescaped in JSON.
"""

import logging
from typing import Optional

import structlog

from .config import settings

# Client libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "elastic_transport", "urllib3")


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the API and the CLI.

    Args:
        level: Log level name (defaults to ``settings.log_level``)
        json_output: JSON lines instead of console output (defaults to ``settings.log_json``)
    """
    level = (level or settings.log_level).upper()
    json_output = settings.log_json if json_output is None else json_output

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

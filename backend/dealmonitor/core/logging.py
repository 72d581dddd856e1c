"""structlog configuration shared by the API process and CLI scripts."""

import logging

import structlog

from dealmonitor.config import settings


def configure_logging(level: str = None, json_output: bool = None) -> None:
    """Configure structlog processors and the minimum log level.

    Args:
        level: Level name such as "INFO" (defaults to settings.LOG_LEVEL)
        json_output: Render JSON lines instead of the console renderer
            (defaults to settings.LOG_JSON)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if json_output is None:
        json_output = settings.LOG_JSON

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

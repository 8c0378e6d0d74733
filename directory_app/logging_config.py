import logging
import sys

import structlog

from directory_app.config import settings


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog once for the whole process."""
    level_name = (level or settings.log_level).upper()
    level_num = logging.getLevelName(level_name)
    if not isinstance(level_num, int):
        level_num = logging.INFO

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if (fmt or settings.log_format) == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )

import logging
import os

import structlog
from dotenv import load_dotenv

load_dotenv()

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(level: int | None = logging.INFO) -> None:
    """
    Configure structured logging for the engine.

    Args:
        level: The logging level to use. Defaults to INFO.
    """
    logging.basicConfig(level=level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event=50,
        ),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def resolve_level(name: str | None) -> int:
    """Map a LOG_LEVEL name to a logging level, DEBUG when unknown."""
    if not name:
        return logging.DEBUG
    return LOG_LEVELS.get(name.upper(), logging.DEBUG)


setup_logging(level=resolve_level(os.getenv("LOG_LEVEL")))

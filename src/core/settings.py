"""
Environment-backed configuration helpers.

Every tunable of the engine (forest size, thresholds, weights, batch size)
can be overridden through environment variables or a local .env file.
"""

import os

import structlog
from dotenv import load_dotenv

load_dotenv()

logger = structlog.get_logger(__name__)


def env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value not in (None, "") else default


def env_int(name: str, default: int | None) -> int | None:
    """Read an integer environment variable, falling back on parse errors"""
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer in environment, using default", name=name, value=raw)
        return default


def env_float(name: str, default: float) -> float:
    """Read a float environment variable, falling back on parse errors"""
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid float in environment, using default", name=name, value=raw)
        return default

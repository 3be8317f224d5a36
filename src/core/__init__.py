"""
Core utilities shared across the engine.
"""

from .logger import setup_logging
from .settings import env_float, env_int, env_str

__all__ = ["setup_logging", "env_float", "env_int", "env_str"]

"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    AnomalyNotFoundError,
    DataValidationError,
    HealthWatchError,
    PreconditionViolation,
)
from .logging_config import setup_logging

__all__ = [
    "Config",
    "config",
    "setup_logging",
    "HealthWatchError",
    "DataValidationError",
    "PreconditionViolation",
    "AnomalyNotFoundError",
]

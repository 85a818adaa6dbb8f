# Utils Package
# Utility Functions and Helpers

from .logger import logger, setup_logger
from .errors import AppError, create_app_error
from .decorators import retry, timed

__all__ = [
    "logger",
    "setup_logger",
    "AppError",
    "create_app_error",
    "retry",
    "timed"
]

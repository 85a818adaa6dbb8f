"""
Errors Module
Application error type carrying an HTTP status and a machine-readable code
"""

from typing import Any, Optional


class AppError(Exception):
    """Error rendered by the shared exception handler in main.py"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details

    def __repr__(self) -> str:
        return f"AppError({self.status_code}, {self.error_code!r}, {self.message!r})"


def create_app_error(message: str, status_code: int, error_code: str, details: Optional[Any] = None) -> AppError:
    """Build an AppError; callers raise the result"""
    return AppError(message, status_code, error_code, details)

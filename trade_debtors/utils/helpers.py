"""
Helper Functions Module
Utility functions used across the application
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from .constants import ErrorCode
from .errors import create_app_error
from .logger import logger


def parse_json_field(value: Any, field: str, strict: bool = True) -> Any:
    """
    Decode a structured field that may arrive as JSON text.

    Multipart clients send nested objects as strings while JSON clients send
    them already structured. Structured values are returned unchanged.

    Args:
        value: Raw field value from the request body
        field: Field name, used for logging
        strict: Raise INVALID_JSON_FORMAT on bad JSON instead of returning the text

    Returns:
        Parsed value
    """
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        if strict:
            raise create_app_error(
                "Invalid JSON format in request data",
                400,
                ErrorCode.INVALID_JSON_FORMAT,
                details={"field": field}
            )
        logger.warning(f"Failed to parse JSON field {field}: {value[:100]}")
        return value


def is_truthy_flag(value: Any) -> bool:
    """Form flags arrive as booleans from JSON and as "true" from multipart"""
    return value is True or value == "true"


def as_list(value: Any) -> List[Any]:
    """Normalize a single identifier or a list of identifiers to a list"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and value.strip().startswith("["):
        try:
            parsed = json.loads(value)
            if isinstance(parsed, list):
                return parsed
        except ValueError:
            pass
    return [value]


def clean_string(value: Any, upper: bool = False) -> Optional[Any]:
    """Trim text values; anything else is returned as is"""
    if not isinstance(value, str):
        return value
    value = value.strip()
    return value.upper() if upper else value


def is_blank(value: Any) -> bool:
    """Missing means absent, null, empty or otherwise falsy"""
    return not value


def utc_now() -> datetime:
    """Current time, timezone-aware"""
    return datetime.now(timezone.utc)


def get_current_timestamp() -> str:
    """Get current timestamp in ISO format"""
    return utc_now().isoformat()

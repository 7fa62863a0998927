"""
Validation utilities for the WHS compliance tracker
Reusable request-level validation helpers for API endpoints
"""
import re
from typing import Any, Dict, List, Optional

from whs_tracker.error_handlers.exceptions import ValidationException


def validate_required_fields(data: Optional[Dict[str, Any]], required_fields: List[str]) -> Dict[str, Any]:
    """
    Validate that all required fields are present in request data.

    Args:
        data: Request data dictionary
        required_fields: List of required field names

    Returns:
        The request data (empty dict if None was given and nothing is required)

    Raises:
        ValidationException: If any required field is missing
    """
    data = data or {}
    missing = [field for field in required_fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationException(f"Missing required fields: {', '.join(missing)}")
    return data


def parse_id_list(value: Optional[str]) -> Optional[List[str]]:
    """
    Parse a comma-separated id list query parameter.

    Returns:
        List of non-empty ids, or None when the parameter is absent or blank
    """
    if not value:
        return None
    ids = [part.strip() for part in value.split(',') if part.strip()]
    return ids or None


def validate_int_range(value: Any, field: str, minimum: int, maximum: int) -> Optional[int]:
    """
    Validate an optional integer field within inclusive bounds.

    Raises:
        ValidationException: If the value is not an integer in range
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationException(f"{field} must be an integer between {minimum} and {maximum}")
    if value < minimum or value > maximum:
        raise ValidationException(f"{field} must be an integer between {minimum} and {maximum}")
    return value


def sanitize_request_data(data: str) -> str:
    """
    Remove sensitive data from request strings for safe logging.

    Examples:
        >>> sanitize_request_data('{"password": "secret123"}')
        '{"password": "[REDACTED]"}'
    """
    for field in ('password', 'token', 'api_key', 'secret', 'credential'):
        data = re.sub(rf'("{field}"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE)
    return data

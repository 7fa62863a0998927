"""
Utility modules for the WHS compliance tracker
"""
from .validators import (
    validate_required_fields,
    parse_id_list,
    validate_int_range,
    sanitize_request_data,
)

__all__ = ['validate_required_fields', 'parse_id_list', 'validate_int_range', 'sanitize_request_data']

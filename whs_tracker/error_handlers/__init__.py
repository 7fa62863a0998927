"""
Unified Error Handling System

Provides centralized, consistent error handling across the application.

Usage:
    from whs_tracker.error_handlers import handle_errors
    from whs_tracker.error_handlers.exceptions import ValidationException

    @analytics_bp.route('/team')
    @handle_errors
    def team_analytics():
        if not valid:
            raise ValidationException('Invalid data')
        return jsonify(payload)
"""
from .exceptions import (
    AppException,
    ValidationException,
    FormatError,
    InvalidRangeError,
    RangeTooLargeError,
    AuthenticationException,
    AuthorizationException,
    ResourceNotFoundException,
    ConflictException,
    ConfigurationException,
    DatabaseException,
    DataIntegrityWarning,
)
from .decorators import handle_errors
from .logging import setup_logging, register_error_handlers, integrity_logger


__all__ = [
    # Exceptions
    'AppException',
    'ValidationException',
    'FormatError',
    'InvalidRangeError',
    'RangeTooLargeError',
    'AuthenticationException',
    'AuthorizationException',
    'ResourceNotFoundException',
    'ConflictException',
    'ConfigurationException',
    'DatabaseException',
    'DataIntegrityWarning',
    # Decorators
    'handle_errors',
    # Logging
    'setup_logging',
    'register_error_handlers',
    'integrity_logger',
]

"""
Custom exception hierarchy for type-safe error handling

Maps application errors to HTTP status codes so every endpoint returns
the same JSON error shape.

Exception Hierarchy:
    AppException (base)
    ├── ValidationException (400)
    │   ├── FormatError (400)
    │   ├── InvalidRangeError (400)
    │   └── RangeTooLargeError (400)
    ├── AuthenticationException (401)
    ├── AuthorizationException (403)
    ├── ResourceNotFoundException (404)
    ├── ConflictException (409)
    ├── ConfigurationException (500)
    └── DatabaseException (500)

DataIntegrityWarning is not part of the hierarchy: it is a Warning that the
analytics engine records and logs instead of raising.
"""
from typing import Dict, Any, Optional


class AppException(Exception):
    """
    Base exception for all application errors

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = 'ApplicationError'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to JSON-serializable dictionary

        Returns:
            Dictionary suitable for JSON response
        """
        result = {
            'error': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }

        if self.details:
            result.update(self.details)

        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationException(AppException):
    """
    Validation errors (HTTP 400)

    Raised when request data fails validation checks.
    """
    status_code = 400
    error_type = 'ValidationError'


class FormatError(ValidationException):
    """
    Malformed date or time string (HTTP 400)

    Example:
        >>> parse_date_string('2024-13-45')
        FormatError: Invalid date '2024-13-45'. Use YYYY-MM-DD
    """
    error_type = 'FormatError'


class InvalidRangeError(ValidationException):
    """Date range whose start is after its end (HTTP 400)"""
    error_type = 'InvalidRangeError'


class RangeTooLargeError(ValidationException):
    """
    Date range wider than the endpoint allows (HTTP 400)

    Raised before any data is fetched for the request.
    """
    error_type = 'RangeTooLargeError'

    def __init__(self, max_days: int, requested_days: int):
        super().__init__(
            f'Date range cannot exceed {max_days} days',
            details={'maxDays': max_days, 'requestedDays': requested_days}
        )
        self.max_days = max_days
        self.requested_days = requested_days


class AuthenticationException(AppException):
    """
    Authentication errors (HTTP 401)

    Raised when the request carries no requester identity.
    """
    status_code = 401
    error_type = 'AuthenticationError'


class AuthorizationException(AppException):
    """
    Authorization errors (HTTP 403)

    Raised when the requester is known but lacks the required role.
    """
    status_code = 403
    error_type = 'AuthorizationError'


class ResourceNotFoundException(AppException):
    """Resource not found (HTTP 404)"""
    status_code = 404
    error_type = 'NotFound'


class ConflictException(AppException):
    """
    Conflicting state (HTTP 409)

    Raised for duplicate schedules, a second active exception for a worker,
    or a second check-in for the same day.
    """
    status_code = 409
    error_type = 'Conflict'


class ConfigurationException(AppException):
    """Configuration errors (HTTP 500)"""
    status_code = 500
    error_type = 'ConfigurationError'


class DatabaseException(AppException):
    """Database operation errors (HTTP 500)"""
    status_code = 500
    error_type = 'DatabaseError'


class DataIntegrityWarning(Warning):
    """
    Non-fatal data problem found while building analytics indexes

    The offending record is dropped from the index it would have populated
    and the computation carries on with partial data.

    Attributes:
        kind: 'invalid_day_of_week', 'ambiguous_schedule' or 'orphaned_member'
        record_id: Identifier of the offending record (may be None)
        message: Human-readable description
    """

    INVALID_DAY_OF_WEEK = 'invalid_day_of_week'
    AMBIGUOUS_SCHEDULE = 'ambiguous_schedule'
    ORPHANED_MEMBER = 'orphaned_member'

    def __init__(self, kind: str, message: str, record_id: Optional[Any] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.record_id = record_id

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'recordId': self.record_id, 'message': self.message}

    def __repr__(self) -> str:
        return f"<DataIntegrityWarning {self.kind} record={self.record_id!r}>"

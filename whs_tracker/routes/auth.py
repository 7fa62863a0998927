"""
Requester identity for API routes

Authentication itself happens upstream; requests arrive with the signed-in
user's id in the X-User-Id header. This module loads that user and checks
their role.
"""
from functools import wraps

from flask import g, request

from whs_tracker.error_handlers.exceptions import AuthenticationException, AuthorizationException
from whs_tracker.models import get_models

USER_ID_HEADER = 'X-User-Id'


def get_requester(roles=None):
    """
    Load the requesting user.

    Args:
        roles: Allowed roles (any role when None)

    Raises:
        AuthenticationException: Header missing or unknown/inactive user
        AuthorizationException: User lacks an allowed role
    """
    user_id = request.headers.get(USER_ID_HEADER, '').strip()
    if not user_id:
        raise AuthenticationException('Authentication required')

    User = get_models()['User']
    user = User.query.get(user_id)
    if user is None or not user.is_active:
        raise AuthenticationException('Unknown or inactive user')

    if roles and user.role not in roles:
        raise AuthorizationException(f'Forbidden: This endpoint requires role {" or ".join(roles)}')
    return user


def require_role(*roles):
    """
    Decorator storing the checked requester in g.requester

    Place it below @handle_errors so its exceptions become JSON responses.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            g.requester = get_requester(roles or None)
            return f(*args, **kwargs)
        return decorated_function
    return decorator

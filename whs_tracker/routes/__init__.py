"""
Routes package for the WHS compliance tracker
Centralizes all route blueprints
"""
from .auth import get_requester, require_role
from .analytics import analytics_bp
from .schedules import schedules_bp
from .exceptions import exceptions_bp
from .checkins import checkins_bp
from .health import health_bp

__all__ = [
    'analytics_bp',
    'schedules_bp',
    'exceptions_bp',
    'checkins_bp',
    'health_bp',
    'get_requester',
    'require_role',
]

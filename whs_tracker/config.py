"""
Configuration management for the WHS compliance tracker
Handles environment-based settings for storage, caching and analytics limits

Uses the lazy validation pattern so development and testing do not need
production credentials.
"""
import secrets
from decouple import config
from typing import Optional


class Config:
    """Base configuration class"""
    # Flask settings
    SECRET_KEY = config('SECRET_KEY', default=secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = config('DATABASE_URL', default='sqlite:///instance/whs_tracker.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_VERSION = '1.0.0'

    # Logging settings
    LOG_LEVEL = config('LOG_LEVEL', default='INFO')
    LOG_FILE = config('LOG_FILE', default='logs/whs_tracker.log')

    # Analytics cache settings
    CACHE_BACKEND = config('CACHE_BACKEND', default='memory')  # memory | redis
    REDIS_URL = config('REDIS_URL', default='redis://localhost:6379/0')
    REDIS_PASSWORD = config('REDIS_PASSWORD', default=None)
    ANALYTICS_CACHE_TTL = config('ANALYTICS_CACHE_TTL', default=300, cast=int)  # 5 minutes
    CACHE_CLEANUP_INTERVAL = config('CACHE_CLEANUP_INTERVAL', default=600, cast=int)  # 10 minutes
    CACHE_CLEANUP_ENABLED = config('CACHE_CLEANUP_ENABLED', default=True, cast=bool)

    # Analytics range caps (days between startDate and endDate)
    TEAM_ANALYTICS_MAX_DAYS = config('TEAM_ANALYTICS_MAX_DAYS', default=90, cast=int)
    SUPERVISOR_ANALYTICS_MAX_DAYS = config('SUPERVISOR_ANALYTICS_MAX_DAYS', default=365, cast=int)
    EXECUTIVE_ANALYTICS_MAX_DAYS = config('EXECUTIVE_ANALYTICS_MAX_DAYS', default=730, cast=int)
    MY_SCHEDULE_MAX_DAYS = config('MY_SCHEDULE_MAX_DAYS', default=90, cast=int)

    # 0 disables sampling of long daily trend series
    DAILY_TREND_MAX_POINTS = config('DAILY_TREND_MAX_POINTS', default=0, cast=int)

    # Rate limiting
    RATELIMIT_ENABLED = config('RATELIMIT_ENABLED', default=True, cast=bool)
    RATELIMIT_DEFAULT = config('RATELIMIT_DEFAULT', default='200 per hour')

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration - can be called explicitly or on-demand

        Raises:
            ValueError: If required configuration is missing
        """
        pass  # Base config has no required validation


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    CACHE_BACKEND = 'memory'
    CACHE_CLEANUP_ENABLED = False
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SECRET_KEY = config('SECRET_KEY', default='change-this-to-a-random-secret-key-in-production')

    SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=True, cast=bool)
    SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)

    # Database Connection Pool (for production databases)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': config('DB_POOL_SIZE', default=10, cast=int),
        'pool_recycle': config('DB_POOL_RECYCLE', default=3600, cast=int),
        'pool_pre_ping': True,
        'max_overflow': config('DB_MAX_OVERFLOW', default=20, cast=int),
    }

    LOG_LEVEL = config('LOG_LEVEL', default='WARNING')

    @classmethod
    def validate(cls) -> None:
        """
        Production mode: validate all required settings

        Raises:
            ValueError: If any required configuration is missing
        """
        try:
            secret_key = config('SECRET_KEY')
        except Exception:
            raise ValueError(
                "SECRET_KEY environment variable must be set in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_hex(32))'"
            )

        if len(secret_key) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters in production (current: {len(secret_key)})."
            )

        if cls.CACHE_BACKEND == 'redis' and not config('REDIS_URL', default=''):
            raise ValueError(
                "CACHE_BACKEND=redis requires REDIS_URL. "
                "Set it in your .env file or switch CACHE_BACKEND to 'memory'."
            )


# Configuration mapping
config_mapping = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None, validate: bool = False) -> type:
    """
    Get configuration class based on environment.

    Args:
        config_name: Environment name ('development', 'testing', 'production')
        validate: Whether to validate configuration immediately (default: False)

    Returns:
        Config class for the specified environment

    Raises:
        ValueError: If validation is enabled and required variables are missing
    """
    if config_name is None:
        config_name = config('FLASK_ENV', default='development')

    config_class = config_mapping.get(config_name, DevelopmentConfig)

    if validate:
        config_class.validate()

    return config_class

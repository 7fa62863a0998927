"""
Flask application factory.

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""
import os

from flask import Flask, request
from flask_wtf.csrf import generate_csrf

from .extensions import db, csrf, limiter
from .config import get_config


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name: Configuration name (development, testing, production)
                    If None, determined from environment

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Apply ProxyFix for correct IP and scheme handling behind reverse proxies
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Load configuration
    config_class = get_config(config_name, validate=True)
    app.config.from_object(config_class)

    # Resolve the default SQLite database under instance/
    basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///instance/'):
        os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(basedir, "instance", "whs_tracker.db")}'

    # Initialize extensions
    db.init_app(app)
    csrf.init_app(app)

    limiter.init_app(app)
    limiter._default_limits = [app.config.get('RATELIMIT_DEFAULT', '200 per hour')]
    limiter._enabled = app.config.get('RATELIMIT_ENABLED', True)

    # Enable foreign key constraints for SQLite
    from sqlalchemy import event
    from sqlalchemy.engine import Engine

    @event.listens_for(Engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite connections"""
        if 'sqlite' in str(dbapi_conn):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Configure logging and error handling
    from whs_tracker.error_handlers import setup_logging, register_error_handlers
    setup_logging(app)
    register_error_handlers(app)

    # Initialize database models
    from whs_tracker.models import init_models, model_registry
    models = init_models(db)
    model_registry.init_app(app)
    model_registry.register(models)

    # Analytics cache
    from whs_tracker.services.analytics_cache import init_cache
    init_cache(app)

    register_blueprints(app)

    if app.config.get('CACHE_CLEANUP_ENABLED', True):
        setup_background_tasks(app)

    setup_request_handlers(app)

    app.logger.info(f"WHS compliance tracker started ({config_class.__name__})")
    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from whs_tracker.routes import analytics_bp, schedules_bp, exceptions_bp, checkins_bp, health_bp

    app.register_blueprint(analytics_bp)
    app.register_blueprint(schedules_bp)
    app.register_blueprint(exceptions_bp)
    app.register_blueprint(checkins_bp)
    app.register_blueprint(health_bp)

    # Health probes are not rate limited
    limiter.exempt(health_bp)


def setup_background_tasks(app):
    """Purge expired analytics cache entries on a fixed interval."""
    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.interval import IntervalTrigger
    from whs_tracker.services.analytics_cache import get_cache
    import atexit

    def cleanup_analytics_cache():
        """Background task to drop expired cache entries."""
        with app.app_context():
            get_cache().cleanup()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=cleanup_analytics_cache,
        trigger=IntervalTrigger(seconds=app.config.get('CACHE_CLEANUP_INTERVAL', 600)),
        id='analytics_cache_cleanup',
        name='Cleanup expired analytics cache entries',
        replace_existing=True
    )
    scheduler.start()

    # Ensure scheduler shuts down when app exits
    atexit.register(lambda: scheduler.shutdown())
    app.extensions['cache_scheduler'] = scheduler


def setup_request_handlers(app):
    """Setup request and response handlers."""

    @app.after_request
    def add_csrf_token_cookie(response):
        """
        Add CSRF token to cookie for browser clients.

        Clients echo it back in the X-CSRFToken header on POST/DELETE requests.
        """
        if not app.config.get('WTF_CSRF_ENABLED', True):
            return response
        if request.endpoint and not request.endpoint.startswith(('static', 'health.')):
            response.set_cookie(
                'csrf_token',
                generate_csrf(),
                secure=app.config.get('SESSION_COOKIE_SECURE', False),
                httponly=False,
                samesite='Lax'
            )
        return response


def init_db(app):
    """Create all tables."""
    with app.app_context():
        db.create_all()

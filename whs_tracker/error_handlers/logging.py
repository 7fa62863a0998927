"""
Error handling and logging utilities for the WHS compliance tracker
Provides centralized logging setup, global error handlers and the
data-integrity logger used by the analytics engine
"""
import logging
import traceback
from datetime import datetime
from flask import jsonify, request
import os

from .exceptions import DataIntegrityWarning


def setup_logging(app):
    """Configure application logging"""
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    log_file = app.config.get('LOG_FILE', 'whs_tracker.log')

    # Make log file path absolute if it's not
    if not os.path.isabs(log_file):
        basedir = os.path.abspath(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
        log_file = os.path.join(basedir, log_file)

    log_dir = os.path.dirname(log_file)
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    # app.logger is the 'whs_tracker' logger, so module loggers under
    # whs_tracker.* propagate into these handlers
    app.logger.setLevel(log_level)
    app.logger.addHandler(file_handler)
    app.logger.addHandler(console_handler)

    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.setLevel(log_level)

    return app.logger


def _json_error(error, message, status_code):
    return jsonify({
        'error': error,
        'message': message,
        'status_code': status_code
    }), status_code


def register_error_handlers(app):
    """Register global error handlers for the Flask app"""

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 Bad Request errors"""
        app.logger.warning(f"Bad request from {request.remote_addr}: {request.url}")
        return _json_error('Bad Request', 'The request could not be understood by the server', 400)

    @app.errorhandler(401)
    def unauthorized_error(error):
        """Handle 401 Unauthorized errors"""
        app.logger.warning(f"Unauthorized access attempt from {request.remote_addr}: {request.url}")
        return _json_error('Unauthorized', 'Authentication required', 401)

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 Forbidden errors"""
        app.logger.warning(f"Forbidden access attempt from {request.remote_addr}: {request.url}")
        return _json_error('Forbidden', 'Access denied', 403)

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 Not Found errors"""
        app.logger.info(f"404 Not Found: {request.url} from {request.remote_addr}")
        return _json_error('Not Found', 'The requested resource was not found', 404)

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 Method Not Allowed errors"""
        app.logger.warning(f"Method not allowed: {request.method} {request.url} from {request.remote_addr}")
        return _json_error(
            'Method Not Allowed',
            f'The {request.method} method is not allowed for this endpoint',
            405
        )

    @app.errorhandler(429)
    def rate_limited_error(error):
        """Handle 429 Too Many Requests errors"""
        app.logger.warning(f"Rate limit exceeded from {request.remote_addr}: {request.url}")
        return _json_error('Too Many Requests', 'Rate limit exceeded', 429)

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error"""
        from whs_tracker.utils.validators import sanitize_request_data

        error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')
        app.logger.error(f"Internal Server Error [{error_id}]: {str(error)}")
        app.logger.error(f"Traceback [{error_id}]: {traceback.format_exc()}")

        app.logger.error(f"Request details [{error_id}]: {request.method} {request.url}")
        request_data = sanitize_request_data(request.get_data(as_text=True)[:1000])
        app.logger.error(f"Request data [{error_id}]: {request_data}")

        return jsonify({
            'error': 'Internal Server Error',
            'message': 'An unexpected error occurred',
            'error_id': error_id,
            'status_code': 500
        }), 500


class IntegrityLogger:
    """Specialized logger for non-fatal data integrity problems"""

    def __init__(self, name='whs_tracker.integrity'):
        self.logger = logging.getLogger(name)

    def record(self, kind, message, record_id=None):
        """
        Log a data integrity problem and return it as a warning object

        Args:
            kind: DataIntegrityWarning kind constant
            message: Human-readable description
            record_id: Identifier of the offending record

        Returns:
            DataIntegrityWarning: The recorded warning
        """
        warning = DataIntegrityWarning(kind, message, record_id=record_id)
        self.logger.warning(f"DATA INTEGRITY [{kind}] record={record_id}: {message}")
        return warning


# Global integrity logger instance
integrity_logger = IntegrityLogger()

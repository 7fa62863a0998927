"""
Health Check and Monitoring Endpoints
Liveness/readiness probes, process status and analytics cache statistics
"""
import os
import sys
from datetime import datetime

import psutil
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from whs_tracker.extensions import db
from whs_tracker.services.analytics_cache import get_cache

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('/ping', methods=['GET'])
def ping():
    """Basic connectivity check"""
    return jsonify({
        'status': 'ok',
        'message': 'pong',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/live', methods=['GET'])
def liveness():
    """
    Liveness probe - the process is up and serving requests.

    Returns:
        200: Application is alive
    """
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness():
    """
    Readiness probe - database and analytics cache are reachable.

    Returns:
        200: Application is ready
        503: Application is not ready
    """
    checks = {
        'database': False,
        'cache': False,
    }
    errors = []

    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = True
    except Exception as e:
        errors.append(f"Database: {str(e)}")

    try:
        get_cache().stats()
        checks['cache'] = True
    except Exception as e:
        errors.append(f"Cache: {str(e)}")

    all_checks_passed = all(checks.values())
    response = {
        'status': 'ready' if all_checks_passed else 'not_ready',
        'checks': checks,
        'timestamp': datetime.utcnow().isoformat()
    }
    if errors:
        response['errors'] = errors

    return jsonify(response), 200 if all_checks_passed else 503


@health_bp.route('/status', methods=['GET'])
def status():
    """
    Detailed application status: process resources and configuration.

    Returns:
        200: Status information
    """
    process = psutil.Process()
    memory_info = process.memory_info()
    disk_usage = psutil.disk_usage('/')

    return jsonify({
        'status': 'operational',
        'timestamp': datetime.utcnow().isoformat(),
        'application': {
            'name': 'WHS Compliance Tracker',
            'version': current_app.config.get('APP_VERSION', 'unknown'),
            'environment': current_app.config.get('FLASK_ENV', 'unknown'),
            'debug': current_app.debug,
        },
        'system': {
            'python_version': sys.version,
            'platform': sys.platform,
            'process_id': os.getpid(),
        },
        'resources': {
            'memory': {
                'used_mb': round(memory_info.rss / 1024 / 1024, 2),
                'percent': round(process.memory_percent(), 2),
            },
            'cpu': {
                'percent': round(process.cpu_percent(interval=0.1), 2),
            },
            'disk': {
                'total_gb': round(disk_usage.total / 1024 / 1024 / 1024, 2),
                'free_gb': round(disk_usage.free / 1024 / 1024 / 1024, 2),
                'percent': disk_usage.percent,
            }
        },
        'database': {
            'type': 'sqlite' if 'sqlite' in current_app.config.get('SQLALCHEMY_DATABASE_URI', '') else 'postgresql',
        },
        'cache': {
            'backend': current_app.config.get('CACHE_BACKEND', 'memory'),
            'ttl_seconds': current_app.config.get('ANALYTICS_CACHE_TTL'),
        },
    }), 200


@health_bp.route('/cache', methods=['GET'])
def cache_stats():
    """Analytics cache statistics (total, active and expired entries)"""
    return jsonify({
        'cache': get_cache().stats(),
        'timestamp': datetime.utcnow().isoformat()
    }), 200

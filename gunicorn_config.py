"""
Gunicorn Configuration for Production Deployment
WHS Compliance Tracker - Production Settings

Set CACHE_BACKEND=redis when running more than one worker so analytics
cache invalidation reaches every worker.

Usage:
    gunicorn --config gunicorn_config.py wsgi:app
"""
import multiprocessing
import os

# Server Socket
bind = os.getenv('GUNICORN_BIND', '0.0.0.0:8000')
backlog = int(os.getenv('GUNICORN_BACKLOG', '2048'))

# Worker Processes
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))
worker_class = os.getenv('GUNICORN_WORKER_CLASS', 'gthread')
threads = int(os.getenv('GUNICORN_THREADS', '4'))
max_requests = int(os.getenv('GUNICORN_MAX_REQUESTS', '10000'))
max_requests_jitter = int(os.getenv('GUNICORN_MAX_REQUESTS_JITTER', '1000'))
timeout = int(os.getenv('GUNICORN_TIMEOUT', '60'))
keepalive = int(os.getenv('GUNICORN_KEEPALIVE', '5'))
graceful_timeout = int(os.getenv('GUNICORN_GRACEFUL_TIMEOUT', '30'))

# Server Mechanics
daemon = False  # Run under systemd/supervisor
pidfile = os.getenv('GUNICORN_PIDFILE', None)

# Logging
accesslog = os.getenv('GUNICORN_ACCESS_LOG', '-')  # '-' for stdout
errorlog = os.getenv('GUNICORN_ERROR_LOG', '-')    # '-' for stderr
loglevel = os.getenv('GUNICORN_LOG_LEVEL', 'info')
access_log_format = '%(h)s %(t)s "%(r)s" %(s)s %(b)s user=%({x-user-id}i)s %(D)s'

# Process Naming
proc_name = 'whs_tracker'


# Server Hooks
def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info("Starting WHS Compliance Tracker")


def when_ready(server):
    """Called just after the server is started."""
    server.log.info("WHS Compliance Tracker is ready. Listening on: %s", bind)


def post_worker_init(worker):
    """Called just after a worker has loaded the application."""
    if os.getenv('CACHE_BACKEND', 'memory') == 'memory' and workers > 1:
        worker.log.warning("Analytics cache is per worker; set CACHE_BACKEND=redis to share it")


def worker_int(worker):
    """Called when a worker receives the SIGINT or SIGQUIT signal."""
    worker.log.info("Worker received SIGINT or SIGQUIT")


# Security
limit_request_line = int(os.getenv('GUNICORN_LIMIT_REQUEST_LINE', '4096'))
limit_request_fields = int(os.getenv('GUNICORN_LIMIT_REQUEST_FIELDS', '100'))
limit_request_field_size = int(os.getenv('GUNICORN_LIMIT_REQUEST_FIELD_SIZE', '8190'))

# Environment Variables
raw_env = [
    f"FLASK_ENV={os.getenv('FLASK_ENV', 'production')}",
]

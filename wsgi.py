"""
WSGI Entry Point for Production Deployment
WHS Compliance Tracker

Entry point for WSGI servers (Gunicorn, uWSGI, etc.) in production.

Usage with Gunicorn:
    gunicorn --config gunicorn_config.py wsgi:app
"""
import os
import sys
from pathlib import Path

# Add the application directory to the Python path
base_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(base_dir))

# Set production environment if not already set
if 'FLASK_ENV' not in os.environ:
    os.environ['FLASK_ENV'] = 'production'

from whs_tracker import create_app, init_db

app = create_app()

# Create tables on first start
try:
    init_db(app)
except Exception as e:
    app.logger.warning(f"Database initialization skipped or failed: {e}")

# This is the WSGI application object
application = app

if __name__ == "__main__":
    # Local run only; use Gunicorn in production
    app.run(debug=True, host='0.0.0.0', port=5000)

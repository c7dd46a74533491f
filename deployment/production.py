#!/usr/bin/env python3
"""
Production deployment configuration for Order Sheets.

Creates the WSGI application with production settings and serves it
with waitress.
"""

import os
import sys
from pathlib import Path
from typing import Dict, Any, List

from loguru import logger


def create_production_app():
    """Create production Flask application with proper configuration."""
    os.environ['FLASK_ENV'] = 'production'

    # Import after setting environment
    from order_sheets import create_app

    config = {
        'SECRET_KEY': os.environ.get('SECRET_KEY', 'production-secret-key-change-me'),
        'DEBUG': False,
        'TESTING': False,
        'OUTPUT_FOLDER': os.environ.get('OUTPUT_FOLDER', '/var/lib/order_sheets/output'),
        'LOG_FILE': os.environ.get('LOG_FILE', '/var/log/order_sheets/app.log'),
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO'),
        'SESSION_COOKIE_SECURE': True,
        'SESSION_COOKIE_HTTPONLY': True,
        'SESSION_COOKIE_SAMESITE': 'Lax',
    }

    app = create_app(config, environment='production')
    setup_production_logging(app)
    return app


def setup_production_logging(app):
    """Replace the default stderr sink with a stdout one at the configured level."""
    logger.remove(0)
    logger.add(sys.stdout, level=app.config.get('LOG_LEVEL', 'INFO'))


def check_production_requirements(config: Dict[str, Any]) -> List[str]:
    """Check that production requirements are met."""
    errors = []

    if not os.environ.get('SECRET_KEY'):
        errors.append("Environment variable SECRET_KEY is required")

    if not config.get('ORDERS_API_URL'):
        errors.append("ORDERS_API_URL is not configured")

    output_folder = Path(config.get('OUTPUT_FOLDER', 'output'))
    try:
        test_file = output_folder / 'test_write'
        test_file.write_text('test')
        test_file.unlink()
    except OSError:
        errors.append(f"No write permission to output folder: {output_folder}")

    return errors


app = create_production_app()

if __name__ == '__main__':
    errors = check_production_requirements(app.config)
    if errors:
        print("Production requirements not met:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    from waitress import serve

    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', '8000'))
    threads = int(os.environ.get('THREADS', '4'))

    logger.info(f"Starting Order Sheets on {host}:{port} with {threads} threads")

    serve(
        app,
        host=host,
        port=port,
        threads=threads,
        channel_timeout=120,
        url_scheme='https' if os.environ.get('HTTPS', '').lower() == 'true' else 'http'
    )

#!/usr/bin/env python3
"""
Order Sheets - Development Runner
Run this script to start the development server
"""

import os
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# Set environment defaults
os.environ.setdefault('FLASK_APP', 'order_sheets')
os.environ.setdefault('FLASK_ENV', 'development')

from order_sheets import create_app


def main():
    """Main entry point"""
    print("=" * 60)
    print("Order Sheets - Development Server")
    print("=" * 60)

    app = create_app()

    print(f"Environment: {app.config.get('FLASK_ENV', 'unknown')}")
    print(f"Debug mode: {app.config.get('DEBUG', False)}")
    print(f"Log level: {app.config.get('LOG_LEVEL', 'INFO')}")
    print(f"Layout mode: {app.config.get('LAYOUT_MODE')}")
    print(f"Order service: {app.config.get('ORDERS_API_URL')}")
    print(f"Documents saved to: {Path(app.config['OUTPUT_FOLDER']).resolve()}")

    if not Path('config/settings.yaml').exists():
        print("Missing config/settings.yaml, using built-in defaults")

    print("-" * 60)
    print("Starting development server...")
    print("Orders: http://localhost:5000/api/orders")
    print("Press Ctrl+C to stop")
    print("-" * 60)

    app.run(
        host='0.0.0.0',
        port=5000,
        debug=app.config.get('DEBUG', True),
        use_reloader=True,
        threaded=True
    )


if __name__ == '__main__':
    main()

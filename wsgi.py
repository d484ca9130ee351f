"""
WSGI Entry Point for the Plot Inventory backend

This module serves as the entry point for WSGI servers (like Gunicorn)
to run the Flask application in production environments.

- All environment variables must be set BEFORE this module is imported
- Missing environment variables cause immediate failure with clear messages
"""

import os
import sys

# Load .env only outside production; production variables come from the platform.
if os.environ.get('FLASK_ENV', '').lower() != 'production' and os.environ.get('FLASK_CONFIG', '').lower() != 'production':
    from dotenv import load_dotenv

    load_dotenv(override=False)

from app import create_app

config_name = (os.getenv('FLASK_CONFIG') or os.getenv('FLASK_ENV') or 'development').lower()

print(f'Initializing plot inventory API with config: {config_name}', file=sys.stderr)

if config_name == 'production':
    required_vars = {
        'SECRET_KEY': 'Required for signing and form handling',
        'DATABASE_URL': 'Required for PostgreSQL connection',
    }

    missing_vars = [
        f'  - {var_name}: {description}'
        for var_name, description in required_vars.items()
        if not os.getenv(var_name)
    ]

    if missing_vars:
        error_msg = (
            '\n' + '=' * 70 + '\n'
            'DEPLOYMENT FAILED: Missing required environment variables\n'
            + '=' * 70 + '\n\n'
            + '\n'.join(missing_vars)
            + '\n' + '=' * 70 + '\n'
        )
        print(error_msg, file=sys.stderr)
        raise RuntimeError('Missing required environment variables in production')

try:
    app = create_app(config_name)
except Exception as exc:
    print(f'\n{"=" * 70}', file=sys.stderr)
    print('FATAL: Application initialization failed', file=sys.stderr)
    print(f'\nError: {exc}', file=sys.stderr)
    print('\nCommon causes:', file=sys.stderr)
    print('  1. Database connection failure (check DATABASE_URL)', file=sys.stderr)
    print('  2. Missing database tables (run: flask db upgrade)', file=sys.stderr)
    print(f'{"=" * 70}\n', file=sys.stderr)
    raise

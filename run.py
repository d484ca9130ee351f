"""Local development server.

Applies pending migrations, then serves the API. Production runs
``gunicorn wsgi:app`` after ``flask db upgrade`` instead.
"""

import os

from flask_migrate import upgrade

from wsgi import app


if __name__ == '__main__':
    if os.environ.get('SKIP_STARTUP_DB_TASKS') != '1':
        with app.app_context():
            upgrade()

    host = os.environ.get('HOST', '127.0.0.1')
    port = int(os.environ.get('PORT', 5000))
    app.run(host=host, port=port)

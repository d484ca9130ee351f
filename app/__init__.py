"""
Flask Application Factory

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

import logging
import os

from flask import Flask, jsonify
from sqlalchemy import inspect, text

from app.config import config
from app.extensions import db, enable_sqlite_immediate_transactions, limiter, migrate


def _safe_log(app, level: str, message: str, *args, **kwargs) -> None:
    """Log without risking startup due to logger misconfiguration."""
    try:
        getattr(app.logger, level)(message, *args, **kwargs)
    except Exception:
        import sys

        print(f"[{level.upper()}] {message % args if args else message}", file=sys.stderr)


def configure_logging(app) -> None:
    """Apply LOG_LEVEL to the app logger and the ``app.*`` service loggers."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)

    package_logger = logging.getLogger('app')
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s in %(name)s: %(message)s'))
        package_logger.addHandler(handler)


def _verify_schema(app) -> None:
    """Non-fatal startup check that the plot tables exist.

    Never creates or alters tables; run ``flask db upgrade`` for that.
    """
    if os.environ.get('SKIP_STARTUP_DB_TASKS') == '1':
        _safe_log(app, 'warning', 'Skipping startup DB tasks due to SKIP_STARTUP_DB_TASKS=1')
        return

    with app.app_context():
        try:
            db.session.execute(text('SELECT 1'))
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            _safe_log(app, 'error', 'Database connectivity check failed (continuing): %s', exc, exc_info=True)
            return

        try:
            existing = set(inspect(db.engine).get_table_names())
            missing = sorted(set(db.metadata.tables.keys()) - existing)
            if missing:
                _safe_log(
                    app,
                    'warning',
                    'Schema appears incomplete. Missing tables: %s. '
                    'Run "flask db upgrade" before serving traffic.',
                    ', '.join(missing),
                )
            else:
                _safe_log(app, 'info', 'All required tables present (%d)', len(db.metadata.tables))
        except Exception as exc:
            _safe_log(app, 'warning', 'Could not verify schema completeness (continuing): %s', exc, exc_info=True)
        finally:
            db.session.remove()


def create_app(config_name='default', overrides=None):
    """
    Application factory function

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')
        overrides (dict): Optional config values applied last (tests)

    Returns:
        Flask: Configured Flask application instance
    """

    config_name = (config_name or 'default').lower()

    app = Flask(__name__)

    # Instantiate the config object so @property values (like
    # ProductionConfig.SQLALCHEMY_DATABASE_URI) are evaluated.
    cfg = config.get(config_name) or config['default']
    cfg_obj = cfg() if isinstance(cfg, type) else cfg
    app.config.from_object(cfg_obj)
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    if config_name == 'production':
        db_uri = app.config.get('SQLALCHEMY_DATABASE_URI')
        if not db_uri:
            app.logger.error('Production requires DATABASE_URL (SQLALCHEMY_DATABASE_URI) to be set')
            raise RuntimeError('Missing DATABASE_URL in production')
        if db_uri.strip().startswith('sqlite:'):
            app.logger.error('Production requires PostgreSQL (DATABASE_URL must not be sqlite)')
            raise RuntimeError('SQLite not allowed in production')
        if not app.config.get('SECRET_KEY'):
            app.logger.error('Production requires SECRET_KEY to be set via environment variable')
            raise RuntimeError('Missing SECRET_KEY in production')
    elif not app.config.get('SECRET_KEY'):
        app.config['SECRET_KEY'] = os.urandom(32)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    if str(app.config.get('SQLALCHEMY_DATABASE_URI', '')).startswith('sqlite'):
        with app.app_context():
            enable_sqlite_immediate_transactions(db.engine)

    if not app.config.get('TESTING'):
        _verify_schema(app)

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_cli_commands(app)

    @app.teardown_appcontext
    def _cleanup_appcontext(exc):
        """Ensure scoped sessions are removed when the app context ends."""
        try:
            db.session.remove()
        except Exception as remove_exc:
            app.logger.error('Session remove during appcontext teardown failed: %s', remove_exc, exc_info=True)
        return None

    return app


def register_blueprints(app):
    """Register Flask blueprints"""

    from app.routes.health import health_bp
    from app.routes.plots import plots_bp

    app.register_blueprint(health_bp)  # No prefix - accessible at /health
    app.register_blueprint(plots_bp, url_prefix='/api/v1/plots')


def register_error_handlers(app):
    """JSON error bodies for errors raised outside the plot blueprint"""

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': {'code': 'NOT_FOUND', 'message': 'Resource not found'}}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({
            'success': False,
            'error': {'code': 'METHOD_NOT_ALLOWED', 'message': 'Method not allowed'},
        }), 405

    @app.errorhandler(429)
    def rate_limited_error(error):
        return jsonify({
            'success': False,
            'error': {'code': 'RATE_LIMITED', 'message': 'Too many requests'},
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception('Unhandled exception (500): %s', error)
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': {'code': 'INTERNAL_SERVER_ERROR', 'message': 'An internal error occurred'},
        }), 500


def register_shell_context(app):
    """Register shell context for Flask CLI"""

    @app.shell_context_processor
    def make_shell_context():
        """Make database models available in Flask shell"""
        from app.models import ContractPlot, PhysicalPlot
        return {
            'db': db,
            'PhysicalPlot': PhysicalPlot,
            'ContractPlot': ContractPlot,
        }


def register_cli_commands(app):
    """Register custom Flask CLI commands."""
    from app.cli import recalc_plot_status_command, seed_sample_plots_command

    app.cli.add_command(recalc_plot_status_command)
    app.cli.add_command(seed_sample_plots_command)

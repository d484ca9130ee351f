"""
Flask Extensions Module

This module initializes all Flask extensions used in the application.
Extensions are initialized here and then attached to the app in the factory.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from sqlalchemy import event


def _rate_limit_key() -> str:
	"""Client IP key for rate limiting.

	Honors the first X-Forwarded-For hop when the app runs behind a proxy.
	"""

	try:
		from flask import has_request_context, request

		if not has_request_context():
			return '0.0.0.0'

		forwarded = (request.headers.get('X-Forwarded-For') or '').split(',')[0].strip()
		return forwarded or (request.remote_addr or '0.0.0.0')
	except RuntimeError:
		return '0.0.0.0'


def enable_sqlite_immediate_transactions(engine) -> None:
	"""Make every SQLite transaction take the write lock up front.

	pysqlite defers BEGIN until the first write, so two sessions could both
	read the same available area before either writes. BEGIN IMMEDIATE gives
	claim workflows the serialized boundary they rely on.
	"""

	@event.listens_for(engine, 'connect')
	def _disable_pysqlite_begin(dbapi_connection, connection_record):
		dbapi_connection.isolation_level = None

	@event.listens_for(engine, 'begin')
	def _begin_immediate(conn):
		conn.exec_driver_sql('BEGIN IMMEDIATE')


# Initialize extensions
# These will be attached to the app in create_app()
db = SQLAlchemy()
migrate = Migrate()
limiter = Limiter(key_func=_rate_limit_key)

"""
Retry helper for read-only report queries.

Transient connection failures (stale pooled connections, network blips)
are retried with a short exponential backoff. The final failure is
re-raised so a failed scan fails the whole report.
"""

import functools
import time

from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError

from app.extensions import db


def with_db_resilience(max_retries=2, backoff_ms=100):
    """
    Retry a read-only database operation on transient errors.

    Args:
        max_retries: Retries after the first attempt (default: 2)
        backoff_ms: Base delay between attempts, doubled each retry

    Only wrap reads: a retried write could apply twice.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except (OperationalError, DBAPIError) as exc:
                    db.session.rollback()

                    if attempt >= max_retries:
                        current_app.logger.error(
                            '%s failed after %d attempts: %s',
                            func.__name__,
                            attempt + 1,
                            exc,
                        )
                        raise

                    current_app.logger.warning(
                        '%s hit a transient DB error (attempt %d/%d): %s',
                        func.__name__,
                        attempt + 1,
                        max_retries + 1,
                        exc,
                    )
                    if backoff_ms > 0:
                        time.sleep(backoff_ms * (2 ** attempt) / 1000.0)

        return wrapper
    return decorator

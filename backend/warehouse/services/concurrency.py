# Overview: Locking, retry and storage-failure translation shared by services.

from __future__ import annotations

import time
from functools import wraps

from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class StorageUnavailableError(RuntimeError):
    """The database could not be reached or kept failing; maps to HTTP 500."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the Product version counter
    catches the race there instead (StaleDataError on flush).
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). Each attempt re-runs func from scratch,
    so func must do its own reads. Any other exception propagates untouched.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error(
                    "Giving up after %d attempts: %s", attempts, exc.__class__.__name__
                )
                raise StorageUnavailableError("Storage is temporarily unavailable") from exc
            current_app.logger.info(
                "Retrying after %s (attempt %d of %d)",
                exc.__class__.__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))


def storage_guard(func):
    """
    Translate driver-level failures of read-only queries into
    StorageUnavailableError. Reads are never retried.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DBAPIError as exc:
            db.session.rollback()
            raise StorageUnavailableError("Storage is temporarily unavailable") from exc
    return wrapper

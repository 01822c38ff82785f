# Overview: Unit-of-work helpers: row locking and bounded retry on concurrency failures.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import PersistenceError


def lock_for_update(query):
    """
    Apply row-level locking for read-validate-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; the version_id column on the
    locked models still turns a lost update into a StaleDataError there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one unit of work, rolling back on any failure.

    OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic version conflicts) are retried with exponential backoff;
    once attempts are exhausted they surface as PersistenceError. Every
    other exception is re-raised after the rollback, without retry.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise PersistenceError(f"Transaction failed after {attempts} attempts") from exc
            current_app.logger.warning(
                "Concurrency conflict (attempt %d/%d), retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    raise PersistenceError("Transaction was not attempted")


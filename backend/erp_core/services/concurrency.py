# Overview: Unit-of-work helpers: row locking and retry on concurrency failures.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Optimistic version columns cover the SQLite case.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute one unit of work, re-running it on concurrency-related failures.

    - StaleDataError (optimistic version conflict) and OperationalError
      (deadlocks, "database is locked") roll back and re-run the WHOLE func.
    - Any other exception rolls back and propagates unchanged, so a unit of
      work is all-or-nothing.
    - Exhausted StaleDataError retries surface as ConcurrencyConflict;
      exhausted OperationalError retries re-raise the storage error.
    """
    if attempts is None:
        attempts = current_app.config.get("CONCURRENCY_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("CONCURRENCY_RETRY_BACKOFF", 0.05)
    attempts = max(1, int(attempts))

    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Concurrency conflict after %d attempts: %s", attempts, exc)
                raise ConcurrencyConflict() from exc
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
        except Exception:
            db.session.rollback()
            raise
        time.sleep(backoff_base * (2 ** attempt))

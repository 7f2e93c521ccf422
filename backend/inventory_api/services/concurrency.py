# Overview: Retry and row-locking helpers shared by the write services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to a query that precedes a write.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (the whole database is locked
    by the first writer instead); PostgreSQL and MySQL honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a DB operation with retry on transient concurrency failures.

    Retries on OperationalError ("database is locked", deadlocks) and
    StaleDataError. The session is rolled back between attempts, so `func`
    must be safe to run again from the start. The last failure is re-raised.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))

# Overview: Service-layer operations for concurrency; scoped transactions, row locks and retries.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Rows already present in the identity map are refreshed so the caller
    always sees the locked (current) values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead.
    """
    return query.with_for_update().populate_existing()


@contextmanager
def unit_of_work():
    """
    Scoped transaction over the current session.

    - SQLite: BEGIN IMMEDIATE so check-then-write sequences are serialized.
    - Commits when the block exits normally.
    - Rolls back on any exception and re-raises it.
    """
    session = db.session
    if db.engine.dialect.name == "sqlite":
        session.execute(text("BEGIN IMMEDIATE"))
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The operation must own its transaction
    so a retry starts from a clean session.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc

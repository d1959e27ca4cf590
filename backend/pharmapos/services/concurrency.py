# Overview: Transaction scoping, row locking and retry of transient store failures.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InvalidStateError, TransientStoreError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead (BEGIN IMMEDIATE).
    """
    return query.with_for_update()


def _has_outer_work(session) -> bool:
    """True when the session carries writes that a unit of work would absorb or discard."""
    if session.new or session.dirty or session.deleted:
        return True
    if db.engine.dialect.name == "sqlite":
        # Flushed writes leave the DBAPI transaction open.
        return session.connection().connection.dbapi_connection.in_transaction
    return False


@contextmanager
def unit_of_work():
    """
    All-or-nothing transactional boundary.

    Yields the session. Commits when the block exits normally; on ANY
    exception the whole transaction is rolled back before the exception
    propagates, so no partial writes are ever observable.

    Refuses to start (InvalidStateError, nothing rolled back) while the
    session holds uncommitted writes from outside the unit of work.
    """
    session = db.session
    if _has_outer_work(session):
        raise InvalidStateError(
            "A unit of work cannot start while the session holds uncommitted changes"
        )
    try:
        if db.engine.dialect.name == "sqlite":
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def run_with_retry(func, *, operation: str, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, dropped
    connections) and StaleDataError (optimistic locking conflicts). The
    operation is re-run from scratch each time. Business-rule errors are
    not caught here and propagate on the first attempt.

    Raises TransientStoreError once attempts are exhausted.
    """
    if attempts is None:
        attempts = current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error(
                    "%s failed after %d attempts: %s", operation, attempts, exc.__class__.__name__
                )
                raise TransientStoreError(operation, attempts) from exc
            current_app.logger.warning(
                "%s hit a transient store error (attempt %d/%d), retrying",
                operation,
                attempt + 1,
                attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
    raise TransientStoreError(operation, attempts)

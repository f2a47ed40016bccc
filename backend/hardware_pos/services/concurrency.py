# Overview: Transaction helpers for the ledger services: row locks, write locks and retries.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import IntegrityFailure, StoreUnavailableError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; acquire_write_lock() covers it there.
    """
    return query.with_for_update()


def acquire_write_lock() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so a check-then-deduct sequence is only safe if
    the transaction holds the RESERVED lock before it reads. BEGIN IMMEDIATE
    waits up to the configured busy timeout, then fails with OperationalError.
    Other backends rely on lock_for_update() instead.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def _retry_settings(attempts, backoff_base):
    config = current_app.config
    if attempts is None:
        attempts = config.get("DB_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("DB_RETRY_BACKOFF", 0.1)
    return max(1, attempts), backoff_base


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation as one transaction, retrying on concurrency failures.

    Retries on OperationalError (lock timeouts, deadlocks) and StaleDataError
    (version counter conflicts). Every failure rolls the session back so no
    partial write survives. Exhausted retries surface as StoreUnavailableError;
    an unexpected constraint violation surfaces as IntegrityFailure.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise StoreUnavailableError(
                    "The database is busy; try again",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning("Retrying after transient database error (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            raise IntegrityFailure("The write was rejected by the database and rolled back") from exc
        except Exception:
            db.session.rollback()
            raise

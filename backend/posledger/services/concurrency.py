# Overview: Service-layer operations for concurrency; encapsulates transaction boundaries and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflict, PersistenceFailure, PosError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_critical_section()
    takes the database write lock there instead.
    """
    return query.with_for_update()


def begin_critical_section() -> None:
    """
    Open the unit of work for a checkout or payout.

    - sqlite: BEGIN IMMEDIATE takes the write lock up front, waiting at most
      the connection busy timeout (LOCK_TIMEOUT_SECONDS).
    - postgresql: bound row-lock waits for this transaction only.
    """
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        timeout_ms = int(current_app.config["LOCK_TIMEOUT_SECONDS"] * 1000)
        db.session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (lock timeouts, deadlocks) and StaleDataError
    (optimistic version conflicts). Every failure rolls the session back first,
    so a failed attempt leaves nothing behind.

    Raises:
        ConcurrencyConflict: contention outlasted the retry budget
        PersistenceFailure: any other storage error
        PosError: domain errors from func, unchanged
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("CONCURRENCY_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("CONCURRENCY_BACKOFF_SECONDS", 0.05)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %s attempts on concurrent update: %s", attempts, exc
                )
                raise ConcurrencyConflict(
                    "Could not acquire locks in time, please retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except PosError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Storage failure, transaction rolled back")
            raise PersistenceFailure("Storage error, nothing was saved") from exc
        except Exception:
            db.session.rollback()
            raise


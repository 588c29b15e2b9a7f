# Overview: Service-layer operations for concurrency; transaction boundaries, locking and retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyConflictError, TransientUnavailableError


logger = logging.getLogger(__name__)

_RETRYABLE = (OperationalError, PoolTimeoutError, StaleDataError, ConcurrencyConflictError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock quantities never rely on this alone; they move through conditional
    UPDATE statements.
    """
    return query.with_for_update()


def _as_infrastructure_error(exc: Exception) -> Exception:
    if isinstance(exc, ConcurrencyConflictError):
        return exc
    if isinstance(exc, StaleDataError):
        return ConcurrencyConflictError(
            "Record was modified by another operation. Please retry.",
            details={"reason": str(exc)},
        )
    return TransientUnavailableError(
        "Database is temporarily unavailable. Please retry.",
        details={"reason": exc.__class__.__name__},
    )


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a unit of work as one all-or-nothing transaction.

    `func` performs its reads and writes and commits at the end. Any
    exception rolls back the session so no partial write survives.

    Retries on OperationalError (lock waits, timeouts), StaleDataError
    (optimistic locking) and ConcurrencyConflictError; once the attempts are
    exhausted these surface as TransientUnavailableError or
    ConcurrencyConflictError. Business-rule errors are never retried.
    """
    if attempts is None:
        attempts = current_app.config.get("RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("RETRY_BACKOFF_SECONDS", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except _RETRYABLE as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise _as_infrastructure_error(exc) from exc
            logger.warning(
                "Retrying after %s (attempt %d of %d)",
                exc.__class__.__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

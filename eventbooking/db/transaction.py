"""
Transaction boundary for workflow operations.

Every capacity-sensitive operation runs as exactly one database transaction:

  1. The wrapped coroutine does its reads and writes on the session.
  2. On success we commit, then hand queued notification signals to the sinks.
  3. On a domain error we roll back, so a rejected request leaves every row
     untouched, and re-raise for the HTTP layer to translate.
  4. On a transient storage failure (lost connection, serialization failure,
     deadlock, SQLite "database is locked") we roll back and run the whole
     operation once more. A second failure is logged and propagates.

Notifications are only dispatched after the commit succeeds. A rollback drops
them, so nobody is told about a booking that never happened.
"""

import functools

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbooking.core.logging import get_logger
from eventbooking.core.metrics import db_retries
from eventbooking.services.notification_service import discard_pending, dispatch_pending

logger = get_logger(__name__)

MAX_TRANSACTION_ATTEMPTS = 2

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_retryable(exc: DBAPIError) -> bool:
    if exc.connection_invalidated or isinstance(exc, OperationalError):
        return True
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


def transactional(func):
    """Run `func(db, ...)` as one transaction with a single retry on transient failures."""

    @functools.wraps(func)
    async def wrapper(db: AsyncSession, *args, **kwargs):
        for attempt in range(1, MAX_TRANSACTION_ATTEMPTS + 1):
            try:
                result = await func(db, *args, **kwargs)
                await db.commit()
            except DBAPIError as exc:
                await db.rollback()
                discard_pending(db)
                if attempt < MAX_TRANSACTION_ATTEMPTS and is_retryable(exc):
                    db_retries.inc()
                    logger.warning(
                        "transaction_retry",
                        operation=func.__name__,
                        attempt=attempt,
                        error=str(exc.orig),
                    )
                    continue
                logger.error(
                    "transaction_failed",
                    operation=func.__name__,
                    attempt=attempt,
                    error=str(exc.orig),
                )
                raise
            except Exception:
                await db.rollback()
                discard_pending(db)
                raise

            await dispatch_pending(db)
            return result

    return wrapper

"""Retryable optimistic transactions.

Writers never take explicit locks. A unit of work runs, commits, and when
the commit loses a race against a concurrent writer (stale row version or
a unique-key collision) the whole unit is rolled back and re-run against
fresh state. Other integrity violations are bugs in the written data and
propagate at once.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..domain_errors import TransactionContentionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFLICT_ERRORS: tuple[type[Exception], ...] = (StaleDataError, IntegrityError)

# PostgreSQL SQLSTATE for unique_violation.
UNIQUE_VIOLATION_SQLSTATE = "23505"
SQLITE_UNIQUE_ERROR_NAMES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def is_unique_violation(error: IntegrityError) -> bool:
    """True when the driver reports a unique or primary-key collision."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    if getattr(orig, "sqlite_errorname", None) in SQLITE_UNIQUE_ERROR_NAMES:
        return True
    message = str(orig if orig is not None else error).lower()
    return "unique constraint" in message or "duplicate key" in message


def _is_conflict(error: Exception) -> bool:
    if isinstance(error, IntegrityError):
        return is_unique_violation(error)
    return True


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    *,
    attempts: int = 5,
    backoff_seconds: float = 0.05,
    sleep: Callable[[float], None] = time.sleep,
    conflict_errors: tuple[type[Exception], ...] = CONFLICT_ERRORS,
) -> T:
    """Run ``work(db)`` and commit, retrying on optimistic-concurrency conflicts.

    Only stale row versions and unique-key collisions count as conflicts.
    Any other exception (domain errors, check or NOT NULL violations)
    rolls back and propagates on the first occurrence. After ``attempts``
    conflicts a ``TransactionContentionError`` is raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            result = work(db)
            db.commit()
            return result
        except conflict_errors as error:
            db.rollback()
            if not _is_conflict(error):
                raise
            if attempt == attempts:
                logger.warning(
                    "Transaction still conflicting after %s attempts: %s",
                    attempts,
                    error.__class__.__name__,
                )
                raise TransactionContentionError(attempts=attempts) from error
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.info(
                "Transaction conflict (%s), retry %s/%s in %.3fs",
                error.__class__.__name__,
                attempt,
                attempts - 1,
                delay,
            )
            if delay > 0:
                sleep(delay)
        except Exception:
            db.rollback()
            raise

    raise AssertionError("unreachable")

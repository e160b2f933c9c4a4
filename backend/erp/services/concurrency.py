# Overview: Row locking and retry helpers for ledger writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)

# Lock contention and optimistic version conflicts (customers.version_id)
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Apply row-level locking to the customer row before a balance change.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id column
    on Customer turns a lost update into a StaleDataError, which is retried.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work, retrying on lock/version conflicts.

    func must be safe to re-run from scratch: the session is rolled back
    before each retry. The last error is re-raised once attempts run out.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning(
                "Retrying unit of work after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))

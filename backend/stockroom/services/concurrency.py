# Overview: Service-layer helpers for lock contention and retries around stock writes.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Stock mutations do not depend on it: they are single conditional writes.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    try:
        return int(current_app.config.get("STOCK_WRITE_ATTEMPTS", 5))
    except RuntimeError:
        return 5


def run_with_retry(
    func,
    *,
    attempts: int | None = None,
    backoff_base: float = 0.05,
    backoff_max: float = 1.0,
):
    """
    Execute a DB unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (database locked, deadlock). The session is
    rolled back before each retry so func always starts from a clean
    transaction. Typed stockroom errors are not retried; they propagate on
    the first attempt.
    """
    if attempts is None:
        attempts = _default_attempts()

    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("giving up after %d attempts: %s", attempts, exc)
                raise
            logger.debug("retrying after contention (attempt %d): %s", attempt + 1, exc)
            time.sleep(min(backoff_base * (2 ** attempt), backoff_max))


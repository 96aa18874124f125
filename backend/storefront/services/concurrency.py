# Overview: Row locking and retry for stock and order writes that can race.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

DEFAULT_WRITE_ATTEMPTS = 3


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on backends that support it.

    SQLite drops the clause; there the version_id columns on Product, Order
    and CartLine turn a lost update into StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Call func, retrying on lock contention and optimistic version conflicts.

    The session is rolled back before each retry so func re-reads current
    rows. Business exceptions are not caught here. The last conflict is
    re-raised once attempts (WRITE_RETRY_ATTEMPTS by default) run out.
    """
    if attempts is None:
        attempts = current_app.config.get("WRITE_RETRY_ATTEMPTS", DEFAULT_WRITE_ATTEMPTS)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt == attempts:
                current_app.logger.error("Write conflict not resolved after %s attempts: %s", attempts, exc)
                raise
            current_app.logger.warning("Write conflict (attempt %s/%s), retrying: %s", attempt, attempts, exc)
            time.sleep(backoff_base * (2 ** (attempt - 1)))

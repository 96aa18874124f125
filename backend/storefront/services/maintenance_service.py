# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

import threading
from datetime import timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import CartLine, Product, SessionToken
from storefront.time_utils import utcnow


def find_orphan_cart_line_ids(user_id: int | None = None) -> list[int]:
    """
    Cart lines that can no longer be checked out: the product is gone, the
    product has no price, or the stored quantity is not positive.
    """
    query = (
        db.session.query(CartLine.id)
        .outerjoin(Product, Product.id == CartLine.product_id)
        .filter(or_(
            Product.id.is_(None),
            Product.price_cents.is_(None),
            CartLine.quantity < 1,
        ))
    )
    if user_id is not None:
        query = query.filter(CartLine.user_id == user_id)
    return [row.id for row in query.all()]


def purge_orphan_cart_lines(line_ids: list[int] | None = None) -> int:
    """
    Delete the given cart lines, or every orphaned line when line_ids is None.

    Returns the number of rows deleted.
    """
    if line_ids is None:
        line_ids = find_orphan_cart_line_ids()
    if not line_ids:
        return 0

    deleted = (
        db.session.query(CartLine)
        .filter(CartLine.id.in_(line_ids))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted


def _purge_in_thread(app, line_ids: list[int]) -> None:
    with app.app_context():
        try:
            deleted = purge_orphan_cart_lines(line_ids)
            app.logger.info("Purged %s orphaned cart line(s)", deleted)
        except Exception:
            db.session.rollback()
            app.logger.exception("Orphaned cart line cleanup failed for ids=%s", line_ids)
        finally:
            db.session.remove()


def schedule_cart_cleanup(line_ids: list[int]) -> threading.Thread | None:
    """
    Purge orphaned cart lines without blocking the request.

    Runs on a daemon thread with its own app context unless
    CART_CLEANUP_IN_BACKGROUND is off, in which case the purge runs inline.
    Failures are logged, never raised to the caller.
    """
    if not line_ids:
        return None

    app = current_app._get_current_object()

    if not app.config.get("CART_CLEANUP_IN_BACKGROUND", True):
        try:
            purge_orphan_cart_lines(line_ids)
        except Exception:
            db.session.rollback()
            app.logger.exception("Orphaned cart line cleanup failed for ids=%s", line_ids)
        return None

    thread = threading.Thread(
        target=_purge_in_thread,
        args=(app, list(line_ids)),
        name="cart-orphan-cleanup",
        daemon=True,
    )
    thread.start()
    return thread


def cleanup_expired_sessions(*, retention_days: int = 7) -> int:
    """
    Delete sessions that expired or were revoked more than retention_days ago.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SessionToken).filter(
        or_(
            SessionToken.expires_at < cutoff,
            (SessionToken.is_revoked.is_(True)) & (SessionToken.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted

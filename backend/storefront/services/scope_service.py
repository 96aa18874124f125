# Overview: Service-layer helpers for moderator row-level scoping of products, orders and statistics.

"""
Row-level scoping for moderators.

Admins see everything. A moderator who is not also an admin only sees the
products they own, the orders that contain at least one of those products,
and statistics computed over that subset. Every service that filters by
ownership goes through these helpers.

USAGE:
    from storefront.services.scope_service import product_scope, order_in_scope

    product_ids = product_scope(user_id, roles)   # None means unrestricted
    if product_ids is not None and not order_in_scope(order, product_ids):
        ...
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, Order
from ..models.auth import ROLE_ADMIN, ROLE_MODERATOR


class ScopeAccessError(Exception):
    """Raised when a caller touches a row outside their scope (403)."""
    pass


def _normalized(roles) -> set[str]:
    return {str(role).lower() for role in (roles or [])}


def is_admin(roles) -> bool:
    return ROLE_ADMIN in _normalized(roles)


def is_staff(roles) -> bool:
    normalized = _normalized(roles)
    return ROLE_ADMIN in normalized or ROLE_MODERATOR in normalized


def is_scoped_moderator(roles) -> bool:
    """True for a moderator without the admin role."""
    normalized = _normalized(roles)
    return ROLE_MODERATOR in normalized and ROLE_ADMIN not in normalized


def owned_product_ids(user_id: int) -> set[int]:
    rows = db.session.query(Product.id).filter(Product.owner_user_id == user_id).all()
    return {row.id for row in rows}


def product_scope(user_id: int | None, roles) -> set[int] | None:
    """
    Resolve the caller's product scope.

    Returns None when the caller is unrestricted, otherwise the set of
    product ids they own (possibly empty).
    """
    if user_id is None or not is_scoped_moderator(roles):
        return None
    return owned_product_ids(user_id)


def order_in_scope(order: Order, product_ids: set[int] | None) -> bool:
    """An order is in scope if it has at least one item for a scoped product."""
    if product_ids is None:
        return True
    return any(item.product_id in product_ids for item in order.items)


def item_in_scope(item, product_ids: set[int] | None) -> bool:
    return product_ids is None or item.product_id in product_ids


def scope_products_query(query, user_id: int | None, roles):
    """Restrict a Product query to the caller's own products when scoped."""
    if user_id is not None and is_scoped_moderator(roles):
        return query.filter(Product.owner_user_id == user_id)
    return query


def require_product_access(product: Product, user_id: int, roles) -> None:
    """Moderators may only manage products they own."""
    if is_admin(roles):
        return
    if is_scoped_moderator(roles) and product.owner_user_id == user_id:
        return
    raise ScopeAccessError("You can only manage your own products")


def require_order_access(order: Order, user_id: int, roles, *, allow_owner: bool) -> None:
    """
    Enforce order visibility.

    - admin: any order
    - the order's owner: their own order, when allow_owner
    - moderator: orders containing at least one of their products

    Raises ScopeAccessError otherwise.
    """
    if is_admin(roles):
        return
    if allow_owner and order.user_id == user_id:
        return
    if is_scoped_moderator(roles):
        if order_in_scope(order, owned_product_ids(user_id)):
            return
        raise ScopeAccessError("You can only access orders containing your products")
    raise ScopeAccessError("You can only access your own orders")

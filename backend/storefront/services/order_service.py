# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Service - checkout and order lifecycle

WORKFLOW:
    cart lines -> stock validation -> stock decrement -> order snapshot -> cart cleared

Checkout runs as a single transaction. Product rows are locked and carry an
optimistic version_id, so two checkouts racing for the same stock cannot both
succeed: the loser hits StaleDataError, is rolled back and retried, and on
retry sees the reduced stock.

STATUS MACHINE:
    pending -> preparation -> payment_confirmed -> shipped -> delivered
    cancelled is reachable through cancel_order from any non-shipped state.
    delivered and cancelled are terminal.
"""

from __future__ import annotations

import secrets
import string

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import CartLine, Order, OrderItem, Product
from ..models.orders import (
    ORDER_STATUSES,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PREPARATION,
    ORDER_STATUS_PAYMENT_CONFIRMED,
    ORDER_STATUS_SHIPPED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
    PAYMENT_STATUSES,
    PAYMENT_STATUS_PENDING,
)
from ..validation import parse_shipping_address
from storefront.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .scope_service import (
    ScopeAccessError,
    is_staff,
    is_scoped_moderator,
    owned_product_ids,
    require_order_access,
)

ORDER_NUMBER_PREFIX = "ORD"
ORDER_NUMBER_SUFFIX_LENGTH = 5
ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NUMBER_MAX_ATTEMPTS = 10

TERMINAL_STATUSES = (ORDER_STATUS_DELIVERED, ORDER_STATUS_CANCELLED)
NON_CANCELLABLE_STATUSES = (ORDER_STATUS_SHIPPED, ORDER_STATUS_DELIVERED, ORDER_STATUS_CANCELLED)

# Used only when ORDER_STATUS_STRICT_TRANSITIONS is on
STRICT_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_PREPARATION, ORDER_STATUS_PAYMENT_CONFIRMED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_PREPARATION: {ORDER_STATUS_PAYMENT_CONFIRMED, ORDER_STATUS_SHIPPED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_PAYMENT_CONFIRMED: {ORDER_STATUS_PREPARATION, ORDER_STATUS_SHIPPED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_SHIPPED: {ORDER_STATUS_DELIVERED},
    ORDER_STATUS_DELIVERED: set(),
    ORDER_STATUS_CANCELLED: set(),
}


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFoundError(OrderError):
    """Raised when an order (or a product needed by checkout) does not exist."""
    pass


class OrderAccessError(OrderError):
    """Raised when the caller may not see or change the order."""
    pass


def generate_order_number(today=None) -> str:
    """ORD-YYYYMMDD-XXXXX with a random uppercase base-36 suffix."""
    day = (today or utcnow()).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}-{day}-{suffix}"


def _unique_order_number() -> str:
    for _ in range(ORDER_NUMBER_MAX_ATTEMPTS):
        candidate = generate_order_number()
        if not db.session.query(Order.id).filter_by(order_number=candidate).first():
            return candidate
    raise OrderError("Could not allocate a unique order number")


def _orders_query():
    return db.session.query(Order).options(selectinload(Order.items), selectinload(Order.user))


def _load_order(order_id: int, *, lock: bool = False) -> Order:
    query = _orders_query().filter(Order.id == order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise OrderNotFoundError("Order not found")
    return order


def _require_access(order: Order, user_id: int, roles, *, allow_owner: bool) -> None:
    try:
        require_order_access(order, user_id, roles, allow_owner=allow_owner)
    except ScopeAccessError as exc:
        raise OrderAccessError(str(exc))


def _checkout_lines(user_id: int) -> list[CartLine]:
    lines = (
        db.session.query(CartLine)
        .filter(CartLine.user_id == user_id)
        .order_by(CartLine.added_at.asc(), CartLine.id.asc())
        .all()
    )
    # Same exclusions as the cart view: unpriced or missing products never reach an order
    return [
        line for line in lines
        if line.product is not None and line.product.price_cents is not None and line.quantity > 0
    ]


def create_order(user_id: int, shipping_address: dict) -> Order:
    """
    Turn the user's cart into an order.

    Raises:
        ValidationError: shipping address incomplete
        OrderError: empty cart or insufficient stock (details name the product)
        OrderNotFoundError: a product disappeared between cart read and checkout

    Nothing is written unless every step succeeds.
    """
    address = parse_shipping_address(shipping_address)

    def _op():
        lines = _checkout_lines(user_id)
        if not lines:
            raise OrderError("Cart is empty")

        reserved: list[tuple[CartLine, Product]] = []
        for line in lines:
            product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
            if not product:
                raise OrderNotFoundError(
                    f"Product with ID {line.product_id} not found",
                    details={"product_id": line.product_id},
                )
            if product.stock_quantity < line.quantity:
                raise OrderError(
                    f"Insufficient stock for {product.name}. "
                    f"Available: {product.stock_quantity}, requested: {line.quantity}",
                    details={
                        "product_id": product.id,
                        "product_name": product.name,
                        "available": product.stock_quantity,
                        "requested": line.quantity,
                    },
                )
            reserved.append((line, product))

        now = utcnow()
        order = Order(
            user_id=user_id,
            order_number=_unique_order_number(),
            status=ORDER_STATUS_PENDING,
            payment_status=PAYMENT_STATUS_PENDING,
            shipping_street=address["street"],
            shipping_city=address["city"],
            shipping_postal_code=address["postal_code"],
            shipping_country=address["country"],
            created_at=now,
            updated_at=now,
        )

        total_cents = 0
        for line, product in reserved:
            product.stock_quantity -= line.quantity
            subtotal = product.price_cents * line.quantity
            total_cents += subtotal
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_price_cents=product.price_cents,
                quantity=line.quantity,
                subtotal_cents=subtotal,
            ))
        order.total_cents = total_cents
        db.session.add(order)

        db.session.query(CartLine).filter(CartLine.user_id == user_id).delete(synchronize_session=False)

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except OrderError as exc:
        db.session.rollback()
        current_app.logger.warning("Checkout rejected for user id=%s: %s", user_id, exc)
        raise

    current_app.logger.info(
        "Order %s created for user id=%s total_cents=%s", order.order_number, user_id, order.total_cents
    )
    return _load_order(order.id)


def list_user_orders(user_id: int) -> list[Order]:
    return (
        _orders_query()
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_all_orders(user_id: int, roles) -> list[Order]:
    """
    Staff order listing, newest first.

    Scoped moderators only see orders containing at least one of their products.
    """
    query = _orders_query()
    if is_scoped_moderator(roles):
        product_ids = owned_product_ids(user_id)
        if not product_ids:
            return []
        order_ids = db.session.query(OrderItem.order_id).filter(OrderItem.product_id.in_(product_ids))
        query = query.filter(Order.id.in_(order_ids))
    elif not is_staff(roles):
        raise OrderAccessError("Staff role required")
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id: int, user_id: int, roles) -> Order:
    order = _load_order(order_id)
    _require_access(order, user_id, roles, allow_owner=True)
    return order


def update_order_status(order_id: int, new_status: str, user_id: int, roles) -> Order:
    """
    Set an order's status.

    Delivered and cancelled orders are frozen. Any other move is accepted,
    backward ones included, unless ORDER_STATUS_STRICT_TRANSITIONS is on.

    Raises OrderError, OrderNotFoundError, OrderAccessError.
    """
    if new_status not in ORDER_STATUSES:
        raise OrderError(
            f"Invalid status: {new_status}",
            details={"allowed": list(ORDER_STATUSES)},
        )

    strict = current_app.config.get("ORDER_STATUS_STRICT_TRANSITIONS", False)

    def _op():
        order = _load_order(order_id, lock=True)
        _require_access(order, user_id, roles, allow_owner=False)

        if order.status in TERMINAL_STATUSES:
            raise OrderError(f"Cannot change status of a {order.status} order")

        if strict and new_status != order.status and new_status not in STRICT_TRANSITIONS[order.status]:
            raise OrderError(
                f"Invalid status transition: {order.status} -> {new_status}",
                details={"allowed": sorted(STRICT_TRANSITIONS[order.status])},
            )

        previous = order.status
        order.status = new_status
        order.updated_at = utcnow()
        db.session.commit()
        return order, previous

    try:
        order, previous = run_with_retry(_op)
    except OrderError:
        db.session.rollback()
        raise

    current_app.logger.info("Order %s status %s -> %s by user id=%s", order.order_number, previous, new_status, user_id)
    return order


def update_payment_status(order_id: int, new_payment_status: str, user_id: int, roles) -> Order:
    """Set an order's payment status. No transition rules apply."""
    if new_payment_status not in PAYMENT_STATUSES:
        raise OrderError(
            f"Invalid payment status: {new_payment_status}",
            details={"allowed": list(PAYMENT_STATUSES)},
        )

    def _op():
        order = _load_order(order_id, lock=True)
        _require_access(order, user_id, roles, allow_owner=False)
        order.payment_status = new_payment_status
        order.updated_at = utcnow()
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except OrderError:
        db.session.rollback()
        raise

    current_app.logger.info("Order %s payment_status -> %s", order.order_number, new_payment_status)
    return order


def cancel_order(order_id: int, user_id: int, roles) -> Order:
    """
    Cancel an order and put its quantities back on the shelf.

    Allowed for the order's owner and for staff. Shipped, delivered and
    already cancelled orders are rejected. Items whose product has since
    been deleted are skipped.
    """
    def _op():
        order = _load_order(order_id, lock=True)
        if order.user_id != user_id and not is_staff(roles):
            raise OrderAccessError("You can only cancel your own orders")

        if order.status in NON_CANCELLABLE_STATUSES:
            raise OrderError(f"Cannot cancel a {order.status} order")

        for item in order.items:
            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            if not product:
                continue
            product.stock_quantity += item.quantity

        order.status = ORDER_STATUS_CANCELLED
        order.updated_at = utcnow()
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except OrderError:
        db.session.rollback()
        raise

    current_app.logger.info("Order %s cancelled by user id=%s", order.order_number, user_id)
    return order

# Overview: Service-layer operations for the shopping cart; encapsulates business logic and database work.

"""
Cart Service

One CartLine per (user, product). Quantities are additive on repeat adds.
Prices are never stored on the line: the cart is always priced from live
product data, and lines that cannot be priced are dropped from the view
and purged asynchronously.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CartLine, Product
from storefront.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .maintenance_service import schedule_cart_cleanup


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CartItemNotFoundError(CartError):
    """Raised when the user has no cart line for the product."""
    pass


class CartProductNotFoundError(CartError):
    """Raised when the product being added does not exist."""
    pass


def _product_summary(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "price_cents": product.price_cents,
        "stock_quantity": product.stock_quantity,
        "images": list(product.images or []),
        "category_id": product.category_id,
    }


def line_payload(line: CartLine) -> dict:
    """Cart line joined with live product data."""
    data = line.to_dict()
    product = line.product
    data["product"] = _product_summary(product)
    data["subtotal_cents"] = product.price_cents * line.quantity
    return data


def _is_orphan(line: CartLine) -> bool:
    product = line.product
    if product is None or product.price_cents is None:
        return True
    quantity = line.quantity
    return not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1


def _require_stock(product: Product, quantity: int) -> None:
    if product.stock_quantity < quantity:
        raise CartError(
            f"Insufficient stock for {product.name}. "
            f"Available: {product.stock_quantity}, requested: {quantity}",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "available": product.stock_quantity,
                "requested": quantity,
            },
        )


def _get_line(user_id: int, product_id: int) -> CartLine | None:
    return db.session.query(CartLine).filter_by(user_id=user_id, product_id=product_id).first()


def add_to_cart(user_id: int, product_id: int, quantity: int = 1) -> dict:
    """
    Add a product to the user's cart.

    The requested quantity is checked against current stock (not against the
    quantity already in the cart). Adding a product that is already in the
    cart increments the existing line.

    Raises:
        CartError: quantity not positive, product unpriced or short on stock
        CartProductNotFoundError: product does not exist
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise CartError("quantity must be a positive integer")

    def _op():
        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise CartProductNotFoundError(f"Product with ID {product_id} not found")
        if product.price_cents is None:
            raise CartError("Product has no price", details={"product_id": product.id})

        _require_stock(product, quantity)

        line = _get_line(user_id, product_id)
        if line:
            line.quantity += quantity
        else:
            line = CartLine(user_id=user_id, product_id=product_id, quantity=quantity, added_at=utcnow())
            db.session.add(line)
            try:
                db.session.flush()
            except IntegrityError:
                # A concurrent add created the line first
                db.session.rollback()
                line = _get_line(user_id, product_id)
                if not line:
                    raise
                line.quantity += quantity

        db.session.commit()
        return line_payload(line)

    return run_with_retry(_op)


def get_cart(user_id: int) -> dict:
    """
    Build the cart view from live product data, newest lines first.

    Returns:
        {"items": [...], "total_cents": int, "item_count": int}

    Lines whose product is missing or unpriced, or whose quantity is not a
    positive integer, are left out and handed to schedule_cart_cleanup.
    """
    lines = (
        db.session.query(CartLine)
        .filter(CartLine.user_id == user_id)
        .order_by(CartLine.added_at.desc(), CartLine.id.desc())
        .all()
    )

    items = []
    orphan_ids = []
    for line in lines:
        if _is_orphan(line):
            orphan_ids.append(line.id)
            continue
        items.append(line_payload(line))

    cart = {
        "items": items,
        "total_cents": sum(item["subtotal_cents"] for item in items),
        "item_count": sum(item["quantity"] for item in items),
    }

    if orphan_ids:
        schedule_cart_cleanup(orphan_ids)

    return cart


def update_quantity(user_id: int, product_id: int, quantity: int) -> dict | None:
    """
    Set the quantity of an existing cart line.

    Zero removes the line and returns None.

    Raises:
        CartItemNotFoundError: no line for this product
        CartError: negative quantity, product unpriced or not enough stock
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise CartError("quantity must be a non-negative integer")

    def _op():
        line = lock_for_update(
            db.session.query(CartLine).filter_by(user_id=user_id, product_id=product_id)
        ).first()
        if not line:
            raise CartItemNotFoundError("Item not found in cart")

        if quantity == 0:
            db.session.delete(line)
            db.session.commit()
            return None

        product = line.product
        if product is None:
            raise CartProductNotFoundError(f"Product with ID {product_id} not found")
        if product.price_cents is None:
            raise CartError("Product has no price", details={"product_id": product.id})
        _require_stock(product, quantity)

        line.quantity = quantity
        db.session.commit()
        return line_payload(line)

    return run_with_retry(_op)


def remove_item(user_id: int, product_id: int) -> None:
    line = _get_line(user_id, product_id)
    if not line:
        raise CartItemNotFoundError("Item not found in cart")
    db.session.delete(line)
    db.session.commit()


def clear_cart(user_id: int) -> int:
    """Delete every line in the user's cart. Returns the number removed."""
    deleted = (
        db.session.query(CartLine)
        .filter(CartLine.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted

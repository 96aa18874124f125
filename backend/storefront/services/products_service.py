# backend/storefront/services/products_service.py
"""
Products Service

OWNERSHIP: products created by a moderator are owned by that moderator, who
is then the only non-admin allowed to change or delete them. Admin-created
products have no owner. Public catalog reads are unscoped; the management
listing goes through scope_service.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, CartLine
from .categories_service import get_category, CategoryNotFoundError
from .concurrency import lock_for_update, run_with_retry
from .scope_service import is_scoped_moderator, require_product_access, scope_products_query

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "price_cents",
    "images",
    "specifications",
    "category_id",
    "stock_quantity",
}

DEFAULT_PER_PAGE = 12
MAX_PER_PAGE = 100


class ProductError(Exception):
    """Raised for product operation errors."""
    pass


class ProductNotFoundError(ProductError):
    """Raised when a product id does not resolve."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int) -> None:
    try:
        get_category(category_id)
    except CategoryNotFoundError as exc:
        raise ProductError(str(exc))


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise ProductNotFoundError(f"Product with ID {product_id} not found")
    return product


def list_products(
    *,
    category_id: int | None = None,
    search: str | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    in_stock_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Public catalog listing with filters and pagination.

    Args:
        category_id: Only products in this category
        search: Case-insensitive substring match on the product name
        min_price_cents / max_price_cents: Inclusive price bounds
        in_stock_only: Hide products with no stock
        page: Page number (1-indexed, default 1)
        per_page: Items per page (default 12, max 100)

    Returns:
        Dict with 'items', 'count' and 'pagination'.
    """
    query = db.session.query(Product)

    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if search:
        query = query.filter(Product.name.ilike(f"%{search.strip()}%"))
    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= max_price_cents)
    if in_stock_only:
        query = query.filter(Product.stock_quantity > 0)

    query = query.order_by(Product.created_at.desc(), Product.id.desc())

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_managed_products(user_id: int, roles) -> list[Product]:
    """Dashboard listing: all products for admins, own products for moderators."""
    query = scope_products_query(db.session.query(Product), user_id, roles)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(*, patch: dict, user_id: int, roles) -> Product:
    """
    Create product using a validated patch dict.

    Moderators become the owner of what they create.

    Raises:
        ProductError: If the category does not exist
    """
    _require_category(patch["category_id"])

    p = Product(images=[], specifications=[], stock_quantity=0)
    apply_product_patch(p, patch)
    if is_scoped_moderator(roles):
        p.owner_user_id = user_id

    db.session.add(p)
    db.session.commit()
    current_app.logger.info("Created product id=%s owner=%s", p.id, p.owner_user_id)
    return p


def update_product(product_id: int, *, patch: dict, user_id: int, roles) -> Product:
    """
    Update a product.

    Raises:
        ProductNotFoundError, ProductError (unknown category),
        ScopeAccessError (moderator editing someone else's product)
    """
    def _op():
        p = get_product(product_id)
        require_product_access(p, user_id, roles)

        if "category_id" in patch and patch["category_id"] != p.category_id:
            _require_category(patch["category_id"])

        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def restock_product(product_id: int, quantity: int, *, user_id: int, roles) -> Product:
    """
    Add quantity to a product's stock.

    Unlike a stock_quantity overwrite, the increment is applied to the
    locked current row, so it composes with concurrent checkouts.

    Raises:
        ProductNotFoundError, ScopeAccessError,
        ProductError (quantity not a positive integer)
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ProductError("quantity must be a positive integer")

    def _op():
        p = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not p:
            raise ProductNotFoundError(f"Product with ID {product_id} not found")
        require_product_access(p, user_id, roles)

        p.stock_quantity += quantity
        db.session.commit()
        return p

    p = run_with_retry(_op)
    current_app.logger.info("Restocked product id=%s by %s (now %s)", p.id, quantity, p.stock_quantity)
    return p


def delete_product(product_id: int, *, user_id: int, roles) -> None:
    """
    Hard-delete a product and the cart lines pointing at it.

    Order items keep their snapshot; their product_id simply stops resolving.
    """
    p = get_product(product_id)
    require_product_access(p, user_id, roles)

    db.session.query(CartLine).filter(CartLine.product_id == p.id).delete()
    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Deleted product id=%s", product_id)

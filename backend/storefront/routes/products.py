# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Product catalog routes.

Reads are public. Writes require the admin or moderator role; moderators
can only change or delete products they own (enforced in products_service).
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..services.products_service import ProductError, ProductNotFoundError
from ..services.scope_service import ScopeAccessError
from ..models import Product
from ..models.auth import ROLE_ADMIN, ROLE_MODERATOR
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_quantity,
    ValidationError,
)
from ..decorators import require_auth, require_roles

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "price_cents",
        "images",
        "specifications",
        "category_id",
        "stock_quantity",
    },
    required_on_create={"name", "price_cents", "category_id"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _validated_patch(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    if "price_cents" in patch and patch["price_cents"] is None:
        raise ValidationError("price_cents cannot be null")
    enforce_rules_product(patch)  # Handles price validation including max check
    return patch


@products_bp.get("")
def list_products():
    """
    Public catalog listing.

    Query params:
    - category_id: int (optional)
    - search: str (optional) - case-insensitive match on name
    - min_price_cents / max_price_cents: int (optional)
    - in_stock: bool (optional) - hide products with no stock
    - page: int (optional, default 1)
    - per_page: int (optional, default 12, max 100)
    """
    return products_service.list_products(
        category_id=request.args.get("category_id", type=int),
        search=request.args.get("search"),
        min_price_cents=request.args.get("min_price_cents", type=int),
        max_price_cents=request.args.get("max_price_cents", type=int),
        in_stock_only=request.args.get("in_stock", "false").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/managed")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def list_managed_products():
    """Products the caller can manage: everything for admins, own products for moderators."""
    products = products_service.list_managed_products(g.current_user.id, g.roles)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def create_product_route():
    """
    Create a new product.

    Moderators become the owner of the product they create.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validated_patch(payload, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch, user_id=g.current_user.id, roles=g.roles)
    except ProductError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validated_patch(payload, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(
            product_id, patch=patch, user_id=g.current_user.id, roles=g.roles
        )
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ScopeAccessError as e:
        return {"error": str(e)}, 403
    except ProductError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal server error"}, 500

    return updated.to_dict(), 200


@products_bp.post("/<int:product_id>/restock")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def restock_product_route(product_id: int):
    """
    Add stock to a product.

    Request body: {"quantity": 5}
    """
    data = request.get_json(silent=True) or {}

    try:
        quantity = parse_quantity(data.get("quantity"))
        product = products_service.restock_product(
            product_id, quantity, user_id=g.current_user.id, roles=g.roles
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ScopeAccessError as e:
        return {"error": str(e)}, 403
    except ProductError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to restock product %s", product_id)
        return {"error": "Internal server error"}, 500

    return product.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def delete_product_route(product_id: int):
    """
    Delete a product.

    Orders that contain it keep their snapshot.
    """
    try:
        products_service.delete_product(product_id, user_id=g.current_user.id, roles=g.roles)
    except ProductNotFoundError as e:
        return {"error": str(e)}, 404
    except ScopeAccessError as e:
        return {"error": str(e)}, 403
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200

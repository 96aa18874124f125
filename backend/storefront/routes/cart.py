# Overview: Flask API routes for cart operations; parses input and returns JSON responses.

# backend/storefront/routes/cart.py
"""Shopping cart API routes. Every route acts on the caller's own cart."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cart_service
from ..services.cart_service import CartError, CartItemNotFoundError, CartProductNotFoundError
from ..validation import ValidationError, parse_id, parse_quantity
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.post("")
@require_auth
def add_to_cart_route():
    """
    Add a product to the cart (increments an existing line).

    Request body: {"product_id": 1, "quantity": 2}   // quantity defaults to 1
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = parse_id(data.get("product_id"), field="product_id")
        quantity = parse_quantity(data.get("quantity", 1))

        line = cart_service.add_to_cart(g.current_user.id, product_id, quantity)
        return jsonify({"item": line}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CartProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.get("")
@require_auth
def get_cart_route():
    try:
        return jsonify(cart_service.get_cart(g.current_user.id)), 200
    except Exception:
        current_app.logger.exception("Failed to load cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/<int:product_id>")
@require_auth
def update_quantity_route(product_id: int):
    """
    Set the quantity of a cart line. Quantity 0 removes the line.

    Request body: {"quantity": 3}
    """
    try:
        data = request.get_json(silent=True) or {}
        quantity = parse_quantity(data.get("quantity"), allow_zero=True)

        line = cart_service.update_quantity(g.current_user.id, product_id, quantity)
        if line is None:
            return jsonify({"message": "Item removed from cart"}), 200
        return jsonify({"item": line}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (CartItemNotFoundError, CartProductNotFoundError) as e:
        return jsonify({"error": str(e)}), 404
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/<int:product_id>")
@require_auth
def remove_item_route(product_id: int):
    try:
        cart_service.remove_item(g.current_user.id, product_id)
        return jsonify({"message": "Item removed from cart"}), 200
    except CartItemNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("")
@require_auth
def clear_cart_route():
    try:
        removed = cart_service.clear_cart(g.current_user.id)
        return jsonify({"message": "Cart cleared", "removed": removed}), 200
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500

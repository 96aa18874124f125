# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""
Order API routes

- Shoppers check out their cart, list and view their own orders, and cancel them
- Staff list orders (moderators: only orders containing their products)
  and move status / payment status
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..services.order_service import OrderError, OrderNotFoundError, OrderAccessError
from ..validation import ValidationError
from ..decorators import require_auth, require_roles
from ..models.auth import ROLE_ADMIN, ROLE_MODERATOR


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_error_response(e: OrderError):
    if isinstance(e, OrderNotFoundError):
        return jsonify({"error": str(e), "details": e.details}), 404
    if isinstance(e, OrderAccessError):
        return jsonify({"error": str(e)}), 403
    return jsonify({"error": str(e), "details": e.details}), 400


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Check out the caller's cart.

    Request body:
    {
        "shipping_address": {
            "street": "1 Main St",
            "city": "Paris",
            "postal_code": "75001",
            "country": "France"
        }
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(g.current_user.id, data.get("shipping_address"))
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_my_orders_route():
    orders = order_service.list_user_orders(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("/all")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def list_all_orders_route():
    try:
        orders = order_service.list_all_orders(g.current_user.id, g.roles)
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except OrderError as e:
        return _order_error_response(e)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.current_user.id, g.roles)
        return jsonify({"order": order.to_dict()}), 200
    except OrderError as e:
        return _order_error_response(e)


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def update_status_route(order_id: int):
    """Request body: {"status": "shipped"}"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not isinstance(status, str) or not status.strip():
            return jsonify({"error": "status required"}), 400

        order = order_service.update_order_status(
            order_id, status.strip().lower(), g.current_user.id, g.roles
        )
        return jsonify({"order": order.to_dict()}), 200

    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/payment")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def update_payment_route(order_id: int):
    """Request body: {"payment_status": "paid"}"""
    try:
        data = request.get_json(silent=True) or {}
        payment_status = data.get("payment_status")
        if not isinstance(payment_status, str) or not payment_status.strip():
            return jsonify({"error": "payment_status required"}), 400

        order = order_service.update_payment_status(
            order_id, payment_status.strip().lower(), g.current_user.id, g.roles
        )
        return jsonify({"order": order.to_dict()}), 200

    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def cancel_order_route(order_id: int):
    """Cancel an order and restore its stock."""
    try:
        order = order_service.cancel_order(order_id, g.current_user.id, g.roles)
        return jsonify({"order": order.to_dict(), "message": "Order cancelled"}), 200
    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin routes for user and role management.

All endpoints require authentication and the admin role.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service
from ..services.auth_service import AccountNotFoundError, AccountProtectedError
from ..decorators import require_auth, require_roles
from ..models.auth import ROLE_ADMIN

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_roles(ROLE_ADMIN)
def list_users():
    """List all users with their roles, newest first."""
    users = auth_service.list_users()
    return jsonify({"users": [user.to_dict() for user in users], "count": len(users)})


@admin_bp.put("/users/<int:user_id>/roles")
@require_auth
@require_roles(ROLE_ADMIN)
def set_user_roles(user_id: int):
    """
    Replace a user's roles.

    Request body: {"roles": ["moderator"]}
    The "user" role is always kept.
    """
    data = request.get_json(silent=True) or {}
    roles = data.get("roles")
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        return jsonify({"error": "roles must be a list of role names"}), 400

    try:
        user = auth_service.set_user_roles(user_id, [r.strip().lower() for r in roles])
        return jsonify({"user": user.to_dict()}), 200
    except AccountNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update roles for user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_roles(ROLE_ADMIN)
def delete_user(user_id: int):
    """
    Delete a user.

    Users with order history are deactivated instead of removed.
    """
    if user_id == g.current_user.id:
        return jsonify({"error": "Cannot delete your own account"}), 400

    try:
        deleted = auth_service.delete_user(user_id)
        if deleted:
            return jsonify({"message": "User deleted", "deleted": True}), 200
        return jsonify({"message": "User has orders and was deactivated", "deleted": False}), 200
    except AccountNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except AccountProtectedError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to delete user %s", user_id)
        return jsonify({"error": "Internal server error"}), 500

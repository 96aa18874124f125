# Overview: Flask API routes for categories; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..decorators import require_auth, require_roles
from ..models import Category
from ..models.auth import ROLE_ADMIN
from ..services import categories_service
from ..services.categories_service import CategoryNotFoundError
from ..validation import ModelValidationPolicy, validate_payload, ValidationError, ConflictError

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "is_active"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    """
    Query params:
    - active: bool (optional) - only active categories
    """
    active_only = request.args.get("active", "false").lower() == "true"
    categories = categories_service.list_categories(active_only=active_only)
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.get("/<int:category_id>")
def get_category(category_id: int):
    try:
        return categories_service.get_category(category_id).to_dict()
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.post("")
@require_auth
@require_roles(ROLE_ADMIN)
def create_category():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = categories_service.create_category(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return {"error": "Internal server error"}, 500

    return category.to_dict(), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_roles(ROLE_ADMIN)
def update_category(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = categories_service.update_category(category_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update category %s", category_id)
        return {"error": "Internal server error"}, 500

    return category.to_dict()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_roles(ROLE_ADMIN)
def delete_category(category_id: int):
    try:
        categories_service.delete_category(category_id)
    except CategoryNotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to delete category %s", category_id)
        return {"error": "Internal server error"}, 500

    return {"message": "Category deleted"}

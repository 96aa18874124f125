# Overview: Flask API routes for dashboard statistics.

from flask import Blueprint, jsonify, g, current_app

from ..services import stats_service
from ..decorators import require_auth, require_roles
from ..models.auth import ROLE_ADMIN, ROLE_MODERATOR

stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("/dashboard")
@require_auth
@require_roles(ROLE_ADMIN, ROLE_MODERATOR)
def dashboard_route():
    """
    Dashboard rollup. Moderators get figures for their own products only.
    """
    try:
        return jsonify(stats_service.get_dashboard_stats(g.current_user.id, g.roles)), 200
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return jsonify({"error": "Internal server error"}), 500

# backend/storefront/routes/system.py
"""
System health and version endpoints.

/health probes the database, the session table and the role setup. Each
probe reports its own status and latency; the worst one decides the code.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, Role, Product, Order, SessionToken
from ..models.auth import ROLE_NAMES
from storefront.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _probe(label: str, fn) -> dict:
    """
    Run one health probe.

    fn returns (status, extra_fields). Any exception marks the probe
    unhealthy and is logged with its traceback.
    """
    started = time.perf_counter()
    try:
        status, extra = fn()
    except Exception:
        current_app.logger.exception("%s health check failed", label)
        status, extra = "unhealthy", {"error": f"{label} error"}
    result = {"status": status, "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
    result.update(extra)
    return result


def _database():
    counts = {
        "users": db.session.query(User).count(),
        "products": db.session.query(Product).count(),
        "orders": db.session.query(Order).count(),
    }
    return "healthy", {"details": counts}


def _sessions():
    open_sessions = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    expired = open_sessions.filter(SessionToken.expires_at < utcnow()).count()
    return "healthy", {
        "details": {"active_sessions": open_sessions.count(), "expired_pending_cleanup": expired},
    }


def _roles():
    existing = {row.name for row in db.session.query(Role.name)}
    missing = [name for name in ROLE_NAMES if name not in existing]
    if missing:
        # `flask system init` creates them
        return "degraded", {"warning": f"Missing roles: {', '.join(missing)}"}
    return "healthy", {"details": {"roles_configured": True}}


@system_bp.get("/health")
def health():
    """
    200 when healthy or degraded, 503 when any probe is unhealthy.
    """
    started = time.perf_counter()
    checks = {
        "database": _probe("Database", _database),
        "session_service": _probe("Session service", _sessions),
        "auth_service": _probe("Auth service", _roles),
    }
    statuses = {check["status"] for check in checks.values()}

    overall = "healthy"
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"

    body = {
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "checks": checks,
    }
    return body, 503 if overall == "unhealthy" else 200


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }

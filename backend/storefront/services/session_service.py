# Overview: Bearer session issue, validation and revocation.

"""
Bearer sessions for the storefront API.

The client holds a random 64-char hex token; only its SHA-256 digest is
stored. A session dies after SESSION_ABSOLUTE_TIMEOUT_HOURS regardless of
activity, or after SESSION_IDLE_TIMEOUT_MINUTES without a request.
Deactivating an account revokes its open sessions on their next use.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from .auth_service import get_user_roles
from storefront.time_utils import utcnow, to_naive_utc


DEFAULT_ABSOLUTE_TIMEOUT_HOURS = 24
DEFAULT_IDLE_TIMEOUT_MINUTES = 120


@dataclass
class SessionContext:
    """
    What require_auth hands to a route.

    roles is resolved once per request so authorization checks and row-level
    scoping do not hit the role tables again.
    """
    user: User
    session: SessionToken
    roles: list[str]


def absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", DEFAULT_ABSOLUTE_TIMEOUT_HOURS))


def idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_TIMEOUT_MINUTES", DEFAULT_IDLE_TIMEOUT_MINUTES))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; tokens carry 256 bits of entropy so no salt or stretching."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _active_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_row, plaintext_token). The plaintext is never persisted.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found or inactive")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout(),
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user and roles.

    Returns None for unknown, revoked or expired tokens and for deactivated
    accounts. Idle and deactivated sessions are revoked on the spot. A valid
    hit refreshes last_used_at.
    """
    session = _active_session(token)
    if session is None:
        return None

    now = utcnow()
    if to_naive_utc(session.expires_at) < now:
        return None

    if now - to_naive_utc(session.last_used_at) > idle_timeout():
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session, roles=get_user_roles(user.id))


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns False when the token was unknown or already revoked."""
    session = _active_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str) -> int:
    """Revoke every open session of a user. The caller commits."""
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason)
    return len(sessions)

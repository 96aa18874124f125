# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication and account service.

Uses bcrypt for password hashing and validates password strength.
Self-registration creates plain shoppers (role "user"); staff roles are
granted by an admin or the CLI.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole
from ..models.auth import ROLE_NAMES, ROLE_USER, ROLE_ADMIN, ROLE_MODERATOR
from ..validation import ConflictError
from storefront.time_utils import utcnow

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ROLE_DESCRIPTIONS = {
    ROLE_USER: "Shopper: cart, checkout and own orders",
    ROLE_MODERATOR: "Seller: manages own products and the orders containing them",
    ROLE_ADMIN: "Full access to catalog, orders, users and statistics",
}


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AccountError(Exception):
    """Raised for account operation errors."""
    pass


class AccountNotFoundError(AccountError):
    """Raised when a user id does not resolve."""
    pass


class AccountProtectedError(AccountError):
    """Raised when an operation targets the protected default admin."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. Malformed hashes verify as False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_default_roles() -> list[Role]:
    """Create the user / moderator / admin roles if missing. Idempotent."""
    roles = []
    for name in ROLE_NAMES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=ROLE_DESCRIPTIONS.get(name))
            db.session.add(role)
        roles.append(role)
    db.session.commit()
    return roles


def _get_role(role_name: str) -> Role:
    if role_name not in ROLE_NAMES:
        raise ValueError(f"Unknown role: {role_name}")
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        role = Role(name=role_name, description=ROLE_DESCRIPTIONS.get(role_name))
        db.session.add(role)
        db.session.flush()
    return role


def assign_role(user_id: int, role_name: str) -> None:
    """Assign role to user (no-op if already assigned)."""
    role = _get_role(role_name)
    existing = db.session.query(UserRole).filter_by(user_id=user_id, role_id=role.id).first()
    if not existing:
        db.session.add(UserRole(user_id=user_id, role_id=role.id))
    db.session.commit()


def get_user_roles(user_id: int) -> list[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name.asc())
        .all()
    )
    return [row.name for row in rows]


def create_user(
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    roles: list[str] | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Every account gets the "user" role; extra roles are added on top.

    Raises:
        ValueError: If the email is malformed or a role is unknown
        ConflictError: If the email is already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValueError("A valid email is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("Email already exists")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        email=email,
        password_hash=password_hash,
        first_name=(first_name or "").strip() or None,
        last_name=(last_name or "").strip() or None,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()

    for role_name in [ROLE_USER, *(roles or [])]:
        role = _get_role(role_name)
        if not db.session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).first():
            db.session.add(UserRole(user_id=user.id, role_id=role.id))

    db.session.commit()
    return user


def register_user(email: str, password: str, first_name: str | None = None, last_name: str | None = None) -> User:
    """Self-registration: always a plain shopper."""
    user = create_user(email, password, first_name=first_name, last_name=last_name)
    current_app.logger.info("Registered user id=%s", user.id)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user by email and password.

    Returns User if credentials are valid and the account is active, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    if not user:
        return None

    if not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def set_user_roles(user_id: int, role_names: list[str]) -> User:
    """
    Replace a user's roles. The "user" role is always kept.

    Raises AccountNotFoundError, ValueError (unknown role).
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise AccountNotFoundError("User not found")

    unknown = sorted(set(role_names) - set(ROLE_NAMES))
    if unknown:
        raise ValueError(f"Unknown roles: {', '.join(unknown)}")

    wanted = {ROLE_USER, *role_names}
    current = {link.role.name: link for link in user.role_links}

    for name, link in current.items():
        if name not in wanted:
            db.session.delete(link)
    for name in sorted(wanted - set(current)):
        db.session.add(UserRole(user_id=user.id, role_id=_get_role(name).id))

    db.session.commit()
    db.session.refresh(user)
    current_app.logger.info("Roles for user id=%s set to %s", user.id, sorted(wanted))
    return user


def delete_user(user_id: int) -> bool:
    """
    Delete a user account with its roles, sessions and cart.

    Users referenced by orders are deactivated instead so order history keeps
    its user reference. Products they own lose their owner.
    The configured default admin cannot be deleted.

    Returns True if the row was deleted, False if it was only deactivated.
    """
    from ..models import CartLine, Order, Product
    from .session_service import revoke_all_user_sessions

    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise AccountNotFoundError("User not found")

    if user.email == normalize_email(current_app.config.get("DEFAULT_ADMIN_EMAIL")):
        raise AccountProtectedError("Cannot delete default admin")

    db.session.query(CartLine).filter_by(user_id=user.id).delete()
    for product in db.session.query(Product).filter_by(owner_user_id=user.id).all():
        product.owner_user_id = None

    has_orders = db.session.query(Order.id).filter_by(user_id=user.id).first() is not None
    if has_orders:
        user.is_active = False
        revoke_all_user_sessions(user.id, "User account deactivated")
        db.session.commit()
        current_app.logger.info("Deactivated user id=%s (has orders)", user_id)
        return False

    db.session.delete(user)
    db.session.commit()
    current_app.logger.info("Deleted user id=%s", user_id)
    return True


def ensure_default_admin() -> User:
    """
    Create the default admin account from config if it does not exist.

    Returns the existing or newly created user.
    """
    create_default_roles()
    email = normalize_email(current_app.config["DEFAULT_ADMIN_EMAIL"])
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        return user
    return create_user(
        email,
        current_app.config["DEFAULT_ADMIN_PASSWORD"],
        first_name="Admin",
        last_name="User",
        roles=[ROLE_ADMIN],
    )

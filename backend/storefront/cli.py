# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the user/moderator/admin roles and the default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --email mod@example.com --password "Password123!" --role moderator
#   Create a user (prompts if options are omitted).
#
# Catalog:
# - python -m flask catalog seed [--owner-email mod@example.com]
#   Create demo categories and products (skips names that already exist).
#
# Maintenance:
# - python -m flask maintenance purge-cart-orphans
#   Delete cart lines whose product is gone or unpriced.
# - python -m flask maintenance cleanup-sessions --retention-days 7
#   Delete sessions that expired or were revoked before the retention window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Category, Product
from .models.auth import ROLE_NAMES
from .services.auth_service import (
    create_user,
    create_default_roles,
    ensure_default_admin,
    normalize_email,
    PasswordValidationError,
)
from .services import maintenance_service
from .validation import ConflictError

DEMO_CATALOG = {
    "Electronics": [
        ("Wireless Headphones", 7999, 25, [{"key": "Battery", "value": "30h"}]),
        ("USB-C Charger", 2499, 60, [{"key": "Power", "value": "65W"}]),
        ("Mechanical Keyboard", 11999, 8, [{"key": "Switches", "value": "Brown"}]),
    ],
    "Home": [
        ("Ceramic Mug", 1299, 100, []),
        ("Desk Lamp", 3499, 0, [{"key": "Bulb", "value": "LED"}]),
    ],
    "Books": [
        ("Python Cookbook", 4599, 12, [{"key": "Pages", "value": "706"}]),
    ],
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize roles and the default admin account.

    Safe to run repeatedly. The admin credentials come from
    DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD.

    SECURITY: Change the default admin password immediately in production!
    """
    click.echo("START Initializing storefront...")

    roles = create_default_roles()
    click.echo(f"PASS Roles ready: {', '.join(r.name for r in roles)}")

    try:
        admin = ensure_default_admin()
    except PasswordValidationError as e:
        click.echo(f"FAIL Default admin password rejected: {str(e)}")
        return

    click.echo(f"PASS Default admin: {admin.email} (ID: {admin.id})")
    click.echo("\nSECURITY Change the default admin password in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLE_NAMES)), default='user', show_default=True, help='Role')
@click.option('--first-name', default=None, help='First name')
@click.option('--last-name', default=None, help='Last name')
@with_appcontext
def create_user_cli(email, password, role, first_name, last_name):
    """
    Create a new user.

    Every account holds the "user" role; --role adds moderator or admin on top.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email, password, first_name=first_name, last_name=last_name, roles=[role])
        click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with roles {', '.join(user.role_names)}")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except (ConflictError, ValueError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<40} {'Active':<8} {'Roles'}")
    click.echo("="*90)

    for user in users:
        roles_str = ", ".join(user.role_names) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<40} {active_str:<8} {roles_str}")

    click.echo("="*90 + "\n")


# =============================================================================
# CATALOG COMMANDS
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Catalog seeding commands."""


@catalog_group.command('seed')
@click.option('--owner-email', default=None, help='Moderator who will own the seeded products')
@with_appcontext
def seed_catalog(owner_email):
    """Create demo categories and products. Existing names are skipped."""
    owner = None
    if owner_email:
        owner = db.session.query(User).filter_by(email=normalize_email(owner_email)).first()
        if not owner:
            click.echo(f"FAIL User '{owner_email}' not found")
            return

    created_categories = 0
    created_products = 0

    for category_name, products in DEMO_CATALOG.items():
        category = db.session.query(Category).filter_by(name=category_name).first()
        if not category:
            category = Category(name=category_name, description=f"Demo {category_name.lower()}", is_active=True)
            db.session.add(category)
            db.session.flush()
            created_categories += 1

        for name, price_cents, stock, specs in products:
            if db.session.query(Product).filter_by(name=name).first():
                continue
            db.session.add(Product(
                name=name,
                price_cents=price_cents,
                stock_quantity=stock,
                images=[],
                specifications=specs,
                category_id=category.id,
                owner_user_id=owner.id if owner else None,
            ))
            created_products += 1

    db.session.commit()
    current_app.logger.info("Seeded %s categories and %s products", created_categories, created_products)
    click.echo(f"PASS Created {created_categories} categories and {created_products} products")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('purge-cart-orphans')
@with_appcontext
def purge_cart_orphans_cli():
    """Delete cart lines whose product no longer exists or has no price."""
    deleted = maintenance_service.purge_orphan_cart_lines()
    click.echo(f"Deleted {deleted} orphaned cart lines.")


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=7, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """
    Cleanup expired and revoked sessions.

    Default retention: 7 days.
    """
    deleted = maintenance_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(maintenance_group)

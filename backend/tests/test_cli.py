# Overview: Pytest coverage for the flask CLI command groups.

from datetime import timedelta

import pytest

from storefront.models import CartLine, Category, Product, Role, SessionToken, User
from storefront.time_utils import utcnow


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_system_init_is_idempotent(runner, db_session):
    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert "PASS Default admin: root@example.com" in first.output
    assert "PASS Default admin: root@example.com" in second.output
    assert db_session.query(Role).count() == 3
    assert db_session.query(User).filter_by(email="root@example.com").count() == 1


def test_users_create_and_list(runner, db_session, setup_roles):
    result = runner.invoke(args=[
        "users", "create",
        "--email", "seller@shop.test",
        "--password", "Password123!",
        "--role", "moderator",
    ])
    assert "PASS Created user: seller@shop.test" in result.output
    assert "moderator" in result.output

    weak = runner.invoke(args=["users", "create", "--email", "weak@shop.test", "--password", "weak"])
    assert "FAIL Password validation failed" in weak.output

    listing = runner.invoke(args=["users", "list"])
    assert "seller@shop.test" in listing.output
    assert "weak@shop.test" not in listing.output


def test_catalog_seed_skips_existing(runner, db_session, moderator):
    result = runner.invoke(args=["catalog", "seed", "--owner-email", moderator.email])
    assert "PASS Created 3 categories and 6 products" in result.output

    again = runner.invoke(args=["catalog", "seed"])
    assert "PASS Created 0 categories and 0 products" in again.output

    assert db_session.query(Category).count() == 3
    assert {p.owner_user_id for p in db_session.query(Product).all()} == {moderator.id}


def test_catalog_seed_unknown_owner(runner, db_session):
    result = runner.invoke(args=["catalog", "seed", "--owner-email", "ghost@shop.test"])
    assert "FAIL User 'ghost@shop.test' not found" in result.output
    assert db_session.query(Product).count() == 0


def test_purge_cart_orphans(runner, db_session, shopper, make_product, put_in_cart):
    product = make_product("Kept")
    put_in_cart(shopper, product.id, 1)
    put_in_cart(shopper, 777, 1)

    result = runner.invoke(args=["maintenance", "purge-cart-orphans"])

    assert "Deleted 1 orphaned cart lines." in result.output
    db_session.expire_all()
    assert [line.product_id for line in db_session.query(CartLine).all()] == [product.id]


def test_cleanup_sessions(runner, db_session, shopper):
    now = utcnow()
    db_session.add_all([
        SessionToken(user_id=shopper.id, token_hash="old", expires_at=now - timedelta(days=30)),
        SessionToken(user_id=shopper.id, token_hash="live", expires_at=now + timedelta(hours=1)),
    ])
    db_session.commit()

    result = runner.invoke(args=["maintenance", "cleanup-sessions", "--retention-days", "7"])

    assert "Deleted 1 sessions older than 7 days." in result.output
    db_session.expire_all()
    assert [s.token_hash for s in db_session.query(SessionToken).all()] == ["live"]

"""
Pytest fixtures for storefront backend tests.

Provides an in-memory application, per-test table wipe, user/catalog
factories and auth header helpers.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import Category, Product, CartLine
from storefront.models.auth import ROLE_ADMIN, ROLE_MODERATOR
from storefront.services.auth_service import create_user, create_default_roles
from storefront.time_utils import utcnow

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CART_CLEANUP_IN_BACKGROUND': False,
        'ORDER_STATUS_STRICT_TRANSITIONS': False,
        'DEFAULT_ADMIN_EMAIL': 'root@example.com',
        'DEFAULT_ADMIN_PASSWORD': 'Root1234!',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup the user / moderator / admin roles."""
    create_default_roles()
    db_session.commit()


@pytest.fixture(scope='function')
def make_user(db_session, setup_roles):
    """Factory: make_user("a@x.com", roles=["moderator"])."""
    def _make(email: str, roles=None, password: str = PASSWORD):
        return create_user(email, password, first_name="Test", last_name="User", roles=roles or [])
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin@shop.test", roles=[ROLE_ADMIN])


@pytest.fixture(scope='function')
def moderator(make_user):
    return make_user("mod@shop.test", roles=[ROLE_MODERATOR])


@pytest.fixture(scope='function')
def other_moderator(make_user):
    return make_user("mod2@shop.test", roles=[ROLE_MODERATOR])


@pytest.fixture(scope='function')
def shopper(make_user):
    return make_user("shopper@shop.test")


@pytest.fixture(scope='function')
def other_shopper(make_user):
    return make_user("shopper2@shop.test")


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Electronics", description="Gadgets", is_active=True)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Factory: make_product("Lamp", price_cents=1000, stock=5, owner=moderator)."""
    def _make(name: str, price_cents=1000, stock: int = 10, owner=None):
        product = Product(
            name=name,
            price_cents=price_cents,
            stock_quantity=stock,
            images=[],
            specifications=[],
            category_id=category.id,
            owner_user_id=owner.id if owner else None,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def put_in_cart(db_session):
    """Insert a cart line directly, bypassing the stock check."""
    def _put(user, product_id: int, quantity: int):
        line = CartLine(user_id=user.id, product_id=product_id, quantity=quantity, added_at=utcnow())
        db_session.add(line)
        db_session.commit()
        return line
    return _put


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def moderator_headers(client, moderator):
    return auth_headers(get_auth_token(client, moderator.email))


@pytest.fixture(scope='function')
def other_moderator_headers(client, other_moderator):
    return auth_headers(get_auth_token(client, other_moderator.email))


@pytest.fixture(scope='function')
def shopper_headers(client, shopper):
    return auth_headers(get_auth_token(client, shopper.email))


@pytest.fixture(scope='function')
def other_shopper_headers(client, other_shopper):
    return auth_headers(get_auth_token(client, other_shopper.email))


@pytest.fixture(scope='function')
def shipping_address():
    return {
        "street": "1 Main Street",
        "city": "Lyon",
        "postal_code": "69001",
        "country": "France",
    }

"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Shoppers are denied staff operations (403)
- Moderators are denied admin-only operations (403)
- Ownership rules for moderators (403)
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/admin/users"),
            ("PUT", "/api/admin/users/1/roles"),
            ("DELETE", "/api/admin/users/1"),
            ("POST", "/api/categories"),
            ("PUT", "/api/categories/1"),
            ("DELETE", "/api/categories/1"),
            ("GET", "/api/products/managed"),
            ("POST", "/api/products"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("POST", "/api/products/1/restock"),
            ("GET", "/api/cart"),
            ("POST", "/api/cart"),
            ("PUT", "/api/cart/1"),
            ("DELETE", "/api/cart/1"),
            ("DELETE", "/api/cart"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("GET", "/api/orders/all"),
            ("GET", "/api/orders/1"),
            ("PUT", "/api/orders/1/status"),
            ("PUT", "/api/orders/1/payment"),
            ("DELETE", "/api/orders/1"),
            ("GET", "/api/stats/dashboard"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bogus_token_rejected(self, client, db_session):
        resp = client.get("/api/cart", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401

    def test_public_catalog_reads(self, client, db_session):
        assert client.get("/api/products").status_code == 200
        assert client.get("/api/categories").status_code == 200


# =============================================================================
# SHOPPER DENIED STAFF OPERATIONS (403)
# =============================================================================


class TestShopperDenied:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("POST", "/api/categories"),
            ("GET", "/api/products/managed"),
            ("POST", "/api/products"),
            ("POST", "/api/products/1/restock"),
            ("GET", "/api/orders/all"),
            ("PUT", "/api/orders/1/status"),
            ("PUT", "/api/orders/1/payment"),
            ("GET", "/api/stats/dashboard"),
        ],
    )
    def test_staff_routes_forbidden(self, client, shopper_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=shopper_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"


class TestModeratorDenied:
    def test_cannot_manage_users(self, client, moderator_headers):
        assert client.get("/api/admin/users", headers=moderator_headers).status_code == 403

    def test_cannot_manage_categories(self, client, moderator_headers):
        resp = client.post("/api/categories", json={"name": "Nope"}, headers=moderator_headers)
        assert resp.status_code == 403

    def test_cannot_edit_other_moderators_product(
        self, client, other_moderator, moderator_headers, make_product
    ):
        product = make_product("Theirs", owner=other_moderator)

        resp = client.put(f"/api/products/{product.id}", json={"stock_quantity": 1}, headers=moderator_headers)
        assert resp.status_code == 403

        resp = client.delete(f"/api/products/{product.id}", headers=moderator_headers)
        assert resp.status_code == 403


class TestSessionLifecycle:
    def test_logout_revokes_token(self, client, shopper_headers):
        assert client.get("/api/auth/me", headers=shopper_headers).status_code == 200

        assert client.post("/api/auth/logout", headers=shopper_headers).status_code == 200

        assert client.get("/api/auth/me", headers=shopper_headers).status_code == 401

    def test_deactivated_user_rejected(self, client, db_session, shopper, shopper_headers):
        shopper.is_active = False
        db_session.commit()

        assert client.get("/api/auth/me", headers=shopper_headers).status_code == 401

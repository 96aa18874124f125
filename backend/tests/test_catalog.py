"""
Catalog route tests: categories and products over HTTP.
"""

import pytest

from storefront.models import CartLine, Product


# =============================================================================
# CATEGORIES
# =============================================================================


class TestCategories:
    def test_admin_crud(self, client, admin_headers):
        resp = client.post(
            "/api/categories", json={"name": "Books", "description": "Paper"}, headers=admin_headers
        )
        assert resp.status_code == 201
        category_id = resp.json["id"]
        assert resp.json["is_active"] is True

        resp = client.put(f"/api/categories/{category_id}", json={"is_active": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is False

        assert client.get(f"/api/categories/{category_id}").json["name"] == "Books"

        resp = client.delete(f"/api/categories/{category_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/categories/{category_id}").status_code == 404

    def test_duplicate_name_conflicts(self, client, admin_headers, category):
        resp = client.post("/api/categories", json={"name": "Electronics"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_missing_name_rejected(self, client, admin_headers):
        resp = client.post("/api/categories", json={"description": "No name"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_in_use_conflicts(self, client, admin_headers, category, make_product):
        make_product("Phone")

        resp = client.delete(f"/api/categories/{category.id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_active_filter(self, client, admin_headers, category):
        client.post("/api/categories", json={"name": "Hidden", "is_active": False}, headers=admin_headers)

        all_names = [c["name"] for c in client.get("/api/categories").json["items"]]
        active_names = [c["name"] for c in client.get("/api/categories?active=true").json["items"]]

        assert all_names == ["Electronics", "Hidden"]
        assert active_names == ["Electronics"]


# =============================================================================
# PRODUCT LISTING
# =============================================================================


class TestProductListing:
    def test_filters(self, client, make_product):
        make_product("Red Lamp", price_cents=1500, stock=3)
        make_product("Blue Lamp", price_cents=4000, stock=0)
        make_product("Chair", price_cents=9000, stock=2)

        names = lambda resp: sorted(p["name"] for p in resp.json["items"])

        assert names(client.get("/api/products?search=lamp")) == ["Blue Lamp", "Red Lamp"]
        assert names(client.get("/api/products?min_price_cents=2000&max_price_cents=9000")) == ["Blue Lamp", "Chair"]
        assert names(client.get("/api/products?in_stock=true")) == ["Chair", "Red Lamp"]

    def test_category_filter(self, client, admin_headers, make_product):
        make_product("Phone")
        other = client.post("/api/categories", json={"name": "Garden"}, headers=admin_headers).json
        client.post(
            "/api/products",
            json={"name": "Rake", "price_cents": 900, "category_id": other["id"]},
            headers=admin_headers,
        )

        resp = client.get(f"/api/products?category_id={other['id']}")
        assert [p["name"] for p in resp.json["items"]] == ["Rake"]

    def test_pagination(self, client, make_product):
        for i in range(5):
            make_product(f"Item {i}")

        resp = client.get("/api/products?page=2&per_page=2")

        assert resp.status_code == 200
        assert resp.json["count"] == 2
        assert resp.json["pagination"] == {
            "page": 2,
            "per_page": 2,
            "total": 5,
            "total_pages": 3,
            "has_next": True,
            "has_prev": True,
        }
        # Newest first
        assert [p["name"] for p in resp.json["items"]] == ["Item 2", "Item 1"]

    def test_per_page_capped(self, client, make_product):
        make_product("Only")
        assert client.get("/api/products?per_page=5000").json["pagination"]["per_page"] == 100

    def test_unknown_product_404(self, client, db_session):
        assert client.get("/api/products/4242").status_code == 404


# =============================================================================
# PRODUCT WRITES
# =============================================================================


class TestProductWrites:
    def test_moderator_owns_created_product(self, client, moderator, moderator_headers, category):
        resp = client.post(
            "/api/products",
            json={
                "name": "Kettle",
                "price_cents": 2999,
                "category_id": category.id,
                "stock_quantity": 4,
                "specifications": [{"key": "Volume", "value": "1.7L"}],
            },
            headers=moderator_headers,
        )

        assert resp.status_code == 201
        assert resp.json["owner_user_id"] == moderator.id
        assert resp.json["specifications"] == [{"key": "Volume", "value": "1.7L"}]

        managed = client.get("/api/products/managed", headers=moderator_headers).json
        assert [p["name"] for p in managed["items"]] == ["Kettle"]

    def test_admin_created_product_has_no_owner(self, client, admin_headers, category):
        resp = client.post(
            "/api/products",
            json={"name": "House Brand", "price_cents": 100, "category_id": category.id},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["owner_user_id"] is None

    def test_moderator_updates_own_product(self, client, moderator, moderator_headers, make_product):
        product = make_product("Mine", owner=moderator)

        resp = client.put(
            f"/api/products/{product.id}", json={"price_cents": 1234}, headers=moderator_headers
        )
        assert resp.status_code == 200
        assert resp.json["price_cents"] == 1234

    def test_admin_can_edit_any_product(self, client, moderator, admin_headers, make_product):
        product = make_product("Mine", owner=moderator)

        resp = client.put(f"/api/products/{product.id}", json={"stock_quantity": 0}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["stock_quantity"] == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "No price", "category_id": None},
            {"price_cents": -1},
            {"price_cents": 12.5},
            {"price_cents": None},
            {"stock_quantity": -3},
            {"owner_user_id": 1},
            {"images": "not-a-list"},
            {"specifications": [{"key": "only key"}]},
        ],
    )
    def test_invalid_payload_rejected(self, client, admin_headers, make_product, payload):
        product = make_product("Target")

        resp = client.put(f"/api/products/{product.id}", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_create_requires_fields(self, client, admin_headers, category):
        resp = client.post("/api/products", json={"name": "Nameless price"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "price_cents" in resp.json["error"]

    def test_create_with_unknown_category(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/products", json={"name": "Orphan", "price_cents": 10, "category_id": 999}, headers=admin_headers
        )
        assert resp.status_code == 400

    def test_delete_removes_cart_lines(self, client, db_session, admin_headers, shopper, make_product, put_in_cart):
        product = make_product("Doomed")
        put_in_cart(shopper, product.id, 1)

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert db_session.get(Product, product.id) is None
        assert db_session.query(CartLine).count() == 0

    def test_delete_unknown_product(self, client, admin_headers, db_session):
        assert client.delete("/api/products/999", headers=admin_headers).status_code == 404


# =============================================================================
# RESTOCK
# =============================================================================


class TestRestockRoute:
    def test_admin_restock(self, client, admin_headers, make_product):
        product = make_product("Lamp", stock=2)

        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": 8}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["stock_quantity"] == 10

    def test_moderator_restock_scoped(self, client, moderator, other_moderator, moderator_headers, make_product):
        mine = make_product("Mine", stock=0, owner=moderator)
        theirs = make_product("Theirs", stock=0, owner=other_moderator)

        assert client.post(f"/api/products/{mine.id}/restock", json={"quantity": 1}, headers=moderator_headers).status_code == 200
        assert client.post(f"/api/products/{theirs.id}/restock", json={"quantity": 1}, headers=moderator_headers).status_code == 403

    @pytest.mark.parametrize("payload", [{}, {"quantity": 0}, {"quantity": "1.5"}, {"quantity": -2}])
    def test_invalid_quantity(self, client, admin_headers, make_product, payload):
        product = make_product("Lamp", stock=2)

        resp = client.post(f"/api/products/{product.id}/restock", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_product(self, client, admin_headers, db_session):
        resp = client.post("/api/products/999/restock", json={"quantity": 1}, headers=admin_headers)
        assert resp.status_code == 404

    def test_shopper_forbidden(self, client, shopper_headers, make_product):
        product = make_product("Lamp", stock=2)
        resp = client.post(f"/api/products/{product.id}/restock", json={"quantity": 1}, headers=shopper_headers)
        assert resp.status_code == 403

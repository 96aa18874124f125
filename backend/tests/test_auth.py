"""
Authentication, account administration and system endpoint tests.
"""

from datetime import timedelta

import pytest

from storefront.models import Order, User
from storefront.services import auth_service, session_service
from storefront.services.auth_service import (
    PasswordValidationError,
    validate_password_strength,
    verify_password,
)
from storefront.time_utils import utcnow


class TestPasswordRules:
    @pytest.mark.parametrize(
        "password",
        ["Sh0rt!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_hash_round_trip(self):
        hashed = auth_service.hash_password("Password123!")
        assert hashed.startswith("$2")
        assert verify_password("Password123!", hashed)
        assert not verify_password("Password123?", hashed)
        assert not verify_password("Password123!", "not-a-bcrypt-hash")


class TestRegisterAndLogin:
    def test_register_returns_token_and_shopper_role(self, client, setup_roles):
        resp = client.post(
            "/api/auth/register",
            json={"email": "New@Shop.test", "password": "Password123!", "first_name": "Nia"},
        )

        assert resp.status_code == 201
        assert resp.json["user"]["email"] == "new@shop.test"
        assert resp.json["roles"] == ["user"]
        token = resp.json["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json["user"]["first_name"] == "Nia"

    def test_duplicate_email_conflicts(self, client, shopper):
        resp = client.post("/api/auth/register", json={"email": shopper.email, "password": "Password123!"})
        assert resp.status_code == 409

    def test_weak_password_rejected(self, client, setup_roles):
        resp = client.post("/api/auth/register", json={"email": "weak@shop.test", "password": "password"})
        assert resp.status_code == 400

    def test_missing_fields(self, client, setup_roles):
        assert client.post("/api/auth/register", json={"email": "x@shop.test"}).status_code == 400
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_invalid_email(self, client, setup_roles):
        resp = client.post("/api/auth/register", json={"email": "not-an-email", "password": "Password123!"})
        assert resp.status_code == 400

    def test_login_success_and_failure(self, client, shopper):
        ok = client.post("/api/auth/login", json={"email": shopper.email, "password": "Password123!"})
        assert ok.status_code == 200
        assert ok.json["token"]
        assert ok.json["session"]["is_revoked"] is False

        bad = client.post("/api/auth/login", json={"email": shopper.email, "password": "Wrong123!!"})
        assert bad.status_code == 401

        unknown = client.post("/api/auth/login", json={"email": "ghost@shop.test", "password": "Password123!"})
        assert unknown.status_code == 401

    def test_token_is_stored_hashed(self, client, db_session, shopper):
        token = client.post(
            "/api/auth/login", json={"email": shopper.email, "password": "Password123!"}
        ).json["token"]

        context = session_service.validate_session(token)
        assert context.user.id == shopper.id
        assert context.session.token_hash == session_service.hash_token(token)
        assert context.session.token_hash != token


class TestAdminUsers:
    def test_list_users(self, client, admin_headers, shopper):
        resp = client.get("/api/admin/users", headers=admin_headers)

        assert resp.status_code == 200
        assert {u["email"] for u in resp.json["users"]} == {"admin@shop.test", shopper.email}

    def test_grant_moderator_role(self, client, admin_headers, shopper):
        resp = client.put(
            f"/api/admin/users/{shopper.id}/roles", json={"roles": ["Moderator"]}, headers=admin_headers
        )

        assert resp.status_code == 200
        assert auth_service.get_user_roles(shopper.id) == ["moderator", "user"]

    def test_unknown_role_rejected(self, client, admin_headers, shopper):
        resp = client.put(
            f"/api/admin/users/{shopper.id}/roles", json={"roles": ["superuser"]}, headers=admin_headers
        )
        assert resp.status_code == 400

        resp = client.put(f"/api/admin/users/{shopper.id}/roles", json={"roles": "admin"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_roles_for_missing_user(self, client, admin_headers):
        resp = client.put("/api/admin/users/9999/roles", json={"roles": []}, headers=admin_headers)
        assert resp.status_code == 404

    def test_delete_user_without_orders(self, client, db_session, admin_headers, shopper):
        resp = client.delete(f"/api/admin/users/{shopper.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["deleted"] is True
        assert db_session.get(User, shopper.id) is None

    def test_delete_user_with_orders_deactivates(
        self, client, db_session, admin_headers, shopper, shopper_headers
    ):
        db_session.add(Order(
            user_id=shopper.id,
            order_number="ORD-20260101-AAAAA",
            total_cents=100,
            shipping_street="1 Main Street",
            shipping_city="Lyon",
            shipping_postal_code="69001",
            shipping_country="France",
        ))
        db_session.commit()

        resp = client.delete(f"/api/admin/users/{shopper.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["deleted"] is False
        assert db_session.get(User, shopper.id).is_active is False
        assert client.get("/api/auth/me", headers=shopper_headers).status_code == 401

    def test_cannot_delete_self(self, client, admin_user, admin_headers):
        resp = client.delete(f"/api/admin/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400

    def test_default_admin_is_protected(self, client, app, admin_headers):
        root = auth_service.ensure_default_admin()
        assert root.email == app.config["DEFAULT_ADMIN_EMAIL"]

        resp = client.delete(f"/api/admin/users/{root.id}", headers=admin_headers)
        assert resp.status_code == 403


class TestSystemEndpoints:
    def test_health_healthy_with_roles(self, client, setup_roles):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert set(resp.json["checks"]) == {"database", "session_service", "auth_service"}

    def test_health_degraded_without_roles(self, client, db_session):
        resp = client.get("/health")

        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"
        assert "Missing roles" in resp.json["checks"]["auth_service"]["warning"]

    def test_version(self, client):
        resp = client.get("/version")
        assert resp.json["api_version"] == "1.0.0"


class TestSessionTimeouts:
    def test_idle_session_is_revoked(self, db_session, shopper):
        session, token = session_service.create_session(shopper.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_expired_session_rejected(self, db_session, shopper):
        session, token = session_service.create_session(shopper.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_idle_window_follows_config(self, app, db_session, shopper, monkeypatch):
        monkeypatch.setitem(app.config, "SESSION_IDLE_TIMEOUT_MINUTES", 600)
        session, token = session_service.create_session(shopper.id)
        session.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token).user.id == shopper.id

    def test_inactive_user_cannot_open_session(self, db_session, shopper):
        shopper.is_active = False
        db_session.commit()

        with pytest.raises(ValueError):
            session_service.create_session(shopper.id)

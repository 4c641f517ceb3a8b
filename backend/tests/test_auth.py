"""
Login, registration, logout and profile endpoint tests.
"""
from datetime import timedelta

import pytest

from flowdash.core import rate_limit
from flowdash.core.config import settings
from flowdash.core.security import decode_session_token
from flowdash.models import Organization

from conftest import DEFAULT_PASSWORD, make_user


def login(client, username, password=DEFAULT_PASSWORD, headers=None, **extra):
    return client.post(
        "/api/auth/login",
        json={"username": username, "password": password, **extra},
        headers=headers,
    )


# ============================================================================
# LOGIN
# ============================================================================

class TestLogin:
    def test_login_sets_session_cookie(self, client, staff, keys):
        response = login(client, "floor1")
        assert response.status_code == 200
        body = response.json()
        assert body["user"]["username"] == "floor1"
        assert body["user"]["role"] == "floor_staff"
        assert "password_hash" not in body["user"]

        token = response.cookies.get("token")
        assert token
        claims = decode_session_token(token, keys)
        assert claims["id"] == staff.id
        assert claims["organization_id"] == staff.organization_id
        assert set(claims) >= {"id", "username", "role", "organization_id", "exp"}

        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=strict" in set_cookie

    def test_username_is_case_insensitive(self, client, staff):
        response = login(client, "FLOOR1")
        assert response.status_code == 200

    def test_default_session_lasts_one_day(self, client, staff, keys):
        response = login(client, "floor1")
        claims = decode_session_token(response.cookies.get("token"), keys)
        lifetime = claims["exp"] - claims["iat"]
        assert lifetime == int(timedelta(days=settings.SESSION_EXPIRE_DAYS).total_seconds())

    def test_remember_me_extends_session(self, client, staff, keys):
        response = login(client, "floor1", rememberMe=True)
        claims = decode_session_token(response.cookies.get("token"), keys)
        lifetime = claims["exp"] - claims["iat"]
        assert lifetime == int(timedelta(days=settings.REMEMBER_ME_EXPIRE_DAYS).total_seconds())
        assert f"max-age={lifetime}" in response.headers["set-cookie"].lower()

    def test_login_records_last_login(self, client, db_session, staff):
        assert staff.last_login is None
        login(client, "floor1")
        db_session.refresh(staff)
        assert staff.last_login is not None

    @pytest.mark.parametrize("username,password", [
        ("floor1", "wrong-password"),
        ("nobody", DEFAULT_PASSWORD),
    ])
    def test_invalid_credentials(self, client, staff, username, password):
        response = login(client, username, password)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"
        assert "token" not in response.cookies

    def test_inactive_user_cannot_login(self, client, db_session, org):
        make_user(db_session, org, "retired", is_active=False)
        response = login(client, "retired")
        assert response.status_code == 403
        assert "deactivated" in response.json()["detail"]

    def test_rate_limited_after_repeated_attempts(self, client, staff):
        for _ in range(settings.LOGIN_RATE_LIMIT):
            assert login(client, "floor1", "wrong-password").status_code == 401
        response = login(client, "floor1")
        assert response.status_code == 429

    def test_forwarded_header_from_untrusted_peer_ignored(self, client, staff):
        for i in range(settings.LOGIN_RATE_LIMIT):
            response = login(client, "floor1", "wrong-password", headers={"X-Forwarded-For": f"10.0.0.{i}"})
            assert response.status_code == 401
        response = login(client, "floor1", headers={"X-Forwarded-For": "10.0.0.250"})
        assert response.status_code == 429

    def test_forwarded_header_from_trusted_proxy_used(self, client, staff, monkeypatch):
        monkeypatch.setattr(settings, "TRUSTED_PROXIES", ["testclient"])
        for _ in range(settings.LOGIN_RATE_LIMIT):
            login(client, "floor1", "wrong-password", headers={"X-Forwarded-For": "203.0.113.5"})
        assert login(client, "floor1", headers={"X-Forwarded-For": "203.0.113.5"}).status_code == 429
        assert login(client, "floor1", headers={"X-Forwarded-For": "203.0.113.6"}).status_code == 200

    def test_expired_windows_evicted(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr(rate_limit.time, "time", lambda: clock[0])
        for i in range(50):
            rate_limit.hit(f"login:10.0.0.{i}", limit=5, window_seconds=60)
        clock[0] += 61
        assert rate_limit.hit("login:10.0.1.1", limit=5, window_seconds=60)
        assert list(rate_limit._attempts) == ["login:10.0.1.1"]

    def test_missing_fields_rejected(self, client):
        response = client.post("/api/auth/login", json={"username": "floor1"})
        assert response.status_code == 422


# ============================================================================
# REGISTRATION
# ============================================================================

class TestRegister:
    PAYLOAD = {
        "organizationName": "Gamma Weaving",
        "name": "Grace Gamma",
        "username": "grace",
        "password": "supersecret",
    }

    def test_register_creates_org_and_owner(self, client, db_session, keys):
        response = client.post("/api/auth/register", json=self.PAYLOAD)
        assert response.status_code == 201
        user_data = response.json()["user"]
        assert user_data["role"] == "super_admin"
        assert user_data["language"] == "en"

        organization = db_session.query(Organization).filter(Organization.id == user_data["organization_id"]).one()
        assert organization.name == "Gamma Weaving"

        claims = decode_session_token(response.cookies.get("token"), keys)
        assert claims["role"] == "super_admin"

    def test_registered_user_can_login(self, client):
        client.post("/api/auth/register", json=self.PAYLOAD)
        assert login(client, "grace", "supersecret").status_code == 200

    def test_duplicate_username_conflicts(self, client, staff):
        response = client.post("/api/auth/register", json={**self.PAYLOAD, "username": "Floor1"})
        assert response.status_code == 409

    def test_short_password_rejected(self, client):
        response = client.post("/api/auth/register", json={**self.PAYLOAD, "password": "short"})
        assert response.status_code == 422


# ============================================================================
# LOGOUT / PROFILE
# ============================================================================

class TestSession:
    def test_logout_clears_cookie(self, client, staff):
        login(client, "floor1")
        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        assert "max-age=0" in response.headers["set-cookie"].lower()

    def test_logout_via_get(self, client):
        assert client.get("/api/auth/logout").status_code == 200

    def test_me_after_login_uses_cookie(self, client, staff):
        login(client, "floor1")
        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["id"] == staff.id

    def test_me_after_deactivation(self, client, db_session, staff):
        login(client, "floor1")
        staff.is_active = False
        db_session.commit()
        response = client.get("/api/auth/me")
        assert response.status_code == 401

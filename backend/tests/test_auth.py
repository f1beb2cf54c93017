"""
Authentication and authorization tests.

Verifies:
- Login error codes (missing fields 400, unknown user 404, bad password 401)
- Session tokens: hashed at rest, revoked on logout and deactivation, expire
- Per-screen, per-branch permissions and admin bypass
- Denials are recorded as security events
"""

from datetime import timedelta

import pytest

from bistro.errors import ValidationError
from bistro.models import SecurityEvent, SessionToken
from bistro.services import auth_service, permission_service, session_service

from conftest import ADMIN_EMAIL, CASHIER_EMAIL, PASSWORD, auth_headers, get_auth_token


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_returns_token_screens_and_branches(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"email": CASHIER_EMAIL, "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.json
        assert body["token"]
        assert body["user"]["email"] == CASHIER_EMAIL
        assert body["screens"] == ["sales"]
        assert body["branches"] == ["china_town"]

    def test_email_is_case_insensitive(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": "  Admin@Bistro.TEST ", "password": PASSWORD})
        assert resp.status_code == 200

    def test_missing_fields(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_credentials"

    def test_unknown_user(self, client, admin_user, db_session):
        resp = client.post("/api/auth/login", json={"email": "ghost@bistro.test", "password": PASSWORD})
        assert resp.status_code == 404
        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.reason == "User not found"

    def test_wrong_password(self, client, admin_user, db_session):
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.json["error"] == "invalid_credentials"
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_inactive_user_cannot_login(self, client, admin_user, db_session):
        admin_user.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
        assert resp.status_code == 401


class TestPasswords:

    def test_hash_is_bcrypt(self):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed.startswith("$2")
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("nope", hashed)

    def test_garbage_hash_does_not_raise(self):
        assert auth_service.verify_password(PASSWORD, "not-a-hash") is False

    def test_short_password_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc:
            auth_service.create_user({"email": "x@bistro.test", "password": "short"})
        assert exc.value.code == "weak_password"


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessions:

    def test_me_requires_token(self, client, seed):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json["error"] == "unauthorized"

    def test_token_stored_hashed(self, client, admin_user, db_session):
        token = get_auth_token(client, ADMIN_EMAIL, PASSWORD)
        stored = db_session.query(SessionToken).one()
        assert stored.token_hash == session_service.hash_token(token)
        assert stored.token_hash != token

    def test_logout_revokes(self, client, admin_headers):
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 200
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

    def test_expired_token_rejected(self, client, admin_user, db_session):
        token = get_auth_token(client, ADMIN_EMAIL, PASSWORD)
        stored = db_session.query(SessionToken).one()
        stored.expires_at = stored.expires_at - timedelta(hours=13)
        db_session.commit()
        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401

    def test_deactivation_revokes_sessions(self, client, admin_headers, cashier_user, db_session):
        token = get_auth_token(client, CASHIER_EMAIL, PASSWORD)
        resp = client.post(f"/api/users/{cashier_user.id}/toggle", headers=admin_headers)
        assert resp.json["is_active"] is False
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert db_session.query(SessionToken).filter_by(user_id=cashier_user.id, is_revoked=False).count() == 0


# =============================================================================
# PERMISSIONS
# =============================================================================


class TestPermissions:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/accounts"),
            ("GET", "/api/journal"),
            ("GET", "/api/orders"),
            ("GET", "/api/invoices"),
            ("GET", "/api/expenses"),
            ("GET", "/api/partners"),
            ("GET", "/api/employees"),
            ("GET", "/api/payroll/runs"),
            ("GET", "/api/products"),
            ("GET", "/api/settings"),
            ("GET", "/api/reports/trial-balance"),
            ("GET", "/api/users"),
        ],
    )
    def test_requires_auth(self, client, seed, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_cashier_denied_accounting(self, client, cashier_headers, db_session):
        resp = client.get("/api/journal", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["error"] == "forbidden"
        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.resource == "/api/journal"

    def test_cashier_denied_user_admin(self, client, cashier_headers):
        assert client.get("/api/users", headers=cashier_headers).status_code == 403

    def test_global_grant_covers_every_branch(self, cashier_user):
        permission_service.grant(cashier_user.id, "reports", "view")
        assert permission_service.has_permission(cashier_user, "reports", "view", "place_india")
        assert permission_service.has_permission(cashier_user, "reports", "view")

    def test_branch_grant_needs_branch(self, cashier_user):
        with pytest.raises(ValidationError) as exc:
            permission_service.has_permission(cashier_user, "sales", "view", None)
        assert exc.value.code == "branch_required"

    def test_no_grant_is_denied(self, cashier_user):
        assert not permission_service.has_permission(cashier_user, "sales", "delete", "china_town")

    def test_explicit_deny_blocks_branch(self, cashier_user):
        permission_service.grant(cashier_user.id, "sales", "view", "place_india", allowed=False)
        assert not permission_service.has_permission(cashier_user, "sales", "view", "place_india")
        assert permission_service.has_permission(cashier_user, "sales", "view", "china_town")

    def test_admin_bypass(self, admin_user):
        assert permission_service.has_permission(admin_user, "payroll", "post", "anywhere")

    def test_replace_permissions_via_api(self, client, admin_headers, cashier_user):
        payload = {"permissions": {"expenses": {"_global": {"view": True}, "china_town": {"create": True}}}}
        resp = client.put(f"/api/users/{cashier_user.id}/permissions", json=payload, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["permissions"] == {
            "expenses": {"_global": {"view": True}, "china_town": {"create": True}},
        }
        resp = client.get(f"/api/users/{cashier_user.id}/permissions", headers=admin_headers)
        assert "sales" not in resp.json["permissions"]

    def test_invalid_permission_payload_keeps_old_rows(self, client, admin_headers, cashier_user):
        resp = client.put(f"/api/users/{cashier_user.id}/permissions", json=[{"screen": "sales"}],
                          headers=admin_headers)
        assert resp.status_code == 400
        assert permission_service.get_permission_map(cashier_user.id)["sales"]["china_town"]["view"] is True


class TestUsersApi:

    def test_create_duplicate_email(self, client, admin_headers):
        body = {"email": "new@bistro.test", "password": PASSWORD, "role": "cashier"}
        assert client.post("/api/users", json=body, headers=admin_headers).status_code == 201
        resp = client.post("/api/users", json=body, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["error"] == "duplicate_email"

    def test_invalid_role(self, client, admin_headers):
        resp = client.post("/api/users", json={"email": "r@bistro.test", "password": PASSWORD, "role": "root"},
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "invalid_role"

    def test_ensure_admin_is_idempotent(self, db_session):
        user, created = auth_service.ensure_admin("boss@bistro.test", PASSWORD)
        again, created_again = auth_service.ensure_admin("BOSS@bistro.test", "Different123!")
        assert created and not created_again
        assert again.id == user.id
        assert auth_service.verify_password(PASSWORD, again.password_hash)

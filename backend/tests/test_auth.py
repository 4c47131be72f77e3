# backend/tests/test_auth.py
from __future__ import annotations

from conftest import PASSWORD, auth_headers, make_user
from crossborder.core.rate_limit import login_attempts
from crossborder.models import Role, UserRole


def _register(client, **overrides):
    body = {
        "email": "new@example.com",
        "password": PASSWORD,
        "name": "New Person",
        "phone": "+852 9123 4567",
        "role": "CLIENT",
    }
    body.update(overrides)
    return client.post("/api/v1/auth/register", json=body)


def test_client_registration_then_login_sets_session(client):
    r = _register(client, email="Chan@Example.com")
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["requires_approval"] is False
    assert body["user"]["email"] == "chan@example.com"
    assert body["user"]["roles"] == ["CLIENT"]

    r = client.post("/api/v1/auth/login", json={"email": "chan@example.com", "password": PASSWORD})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["selected_role"] == "CLIENT"
    assert body["redirect"] == "/dashboard/client"
    assert "cb_session" in r.cookies
    assert "cb_refresh" in r.cookies

    # the session cookie alone authenticates
    me = client.get("/api/v1/auth/me")
    assert me.status_code == 200, me.text
    assert me.json()["user"]["email"] == "chan@example.com"
    assert me.json()["profiles"]["client"] is not None

    refreshed = client.post("/api/v1/auth/refresh")
    assert refreshed.status_code == 200, refreshed.text
    assert refreshed.json()["selected_role"] == "CLIENT"


def test_registration_validates_fields(client):
    r = _register(client, password="weakpass", name="A")
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["code"] == "VALIDATION_ERROR"
    assert detail["errors"]["name"] == "Name must be at least 2 characters"
    assert detail["errors"]["password"] == "Password must contain uppercase, lowercase, and number"


def test_admin_role_cannot_be_self_registered(client):
    r = _register(client, role="ADMIN")
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_ROLE"


def test_driver_registration_requires_license_data(client):
    r = _register(client, role="DRIVER")
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "DRIVER_DATA_REQUIRED"

    r = _register(
        client,
        role="DRIVER",
        driver_data={"license_number": "HKDL-001", "license_expiry": "2099-01-01T00:00:00Z", "languages": ["English"]},
    )
    assert r.status_code == 201, r.text
    assert r.json()["requires_approval"] is True
    assert r.json()["user"]["roles"] == ["DRIVER"]


def test_duplicate_license_number_is_rejected(client, db):
    make_user(db, "driver@example.com", roles=("DRIVER",), license_number="HKDL-777")
    r = _register(
        client,
        role="DRIVER",
        driver_data={"license_number": "HKDL-777", "license_expiry": "2099-01-01T00:00:00Z", "languages": ["English"]},
    )
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "LICENSE_EXISTS"


def test_editor_registration_needs_invitation(client):
    r = _register(client, role="BLOG_EDITOR")
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVITATION_REQUIRED"

    r = _register(client, role="BLOG_EDITOR", editor_invite_code="EDITOR2025")
    assert r.status_code == 201, r.text
    assert r.json()["requires_approval"] is True


def test_existing_account_can_add_a_role_with_matching_password(client, db):
    make_user(db, "multi@example.com")

    wrong = _register(client, email="multi@example.com", password="Other1234")
    assert wrong.status_code == 400
    assert wrong.json()["detail"]["code"] == "USER_EXISTS"

    same_role = _register(client, email="multi@example.com")
    assert same_role.status_code == 400

    added = _register(client, email="multi@example.com", role="BLOG_EDITOR", editor_invite_code="EDITOR2025")
    assert added.status_code == 201, added.text
    assert sorted(added.json()["user"]["roles"]) == ["BLOG_EDITOR", "CLIENT"]


def test_invalid_credentials_report_remaining_attempts(client, db):
    make_user(db, "someone@example.com")
    r = client.post("/api/v1/auth/login", json={"email": "someone@example.com", "password": "Wrong1234"})
    assert r.status_code == 401
    detail = r.json()["detail"]
    assert detail["code"] == "INVALID_CREDENTIALS"
    assert detail["attempts_remaining"] == 4


def test_login_locks_after_repeated_failures(client, db):
    make_user(db, "locked@example.com")
    for _ in range(5):
        login_attempts.register_failure("locked@example.com")

    r = client.post("/api/v1/auth/login", json={"email": "LOCKED@example.com", "password": PASSWORD})
    assert r.status_code == 429
    assert r.json()["detail"]["code"] == "LOGIN_LOCKED"
    assert int(r.headers["Retry-After"]) > 0


def test_login_ip_rate_limit(client):
    codes = [
        client.post("/api/v1/auth/login", json={"email": f"nobody{i}@example.com", "password": "x"}).status_code
        for i in range(6)
    ]
    assert codes[:5] == [401] * 5
    assert codes[5] == 429


def test_disabled_user_cannot_sign_in(client, db):
    make_user(db, "off@example.com", is_active=False)
    r = client.post("/api/v1/auth/login", json={"email": "off@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "USER_DISABLED"


def test_login_honours_requested_role_and_switching(client, db):
    user = make_user(db, "both@example.com", roles=("CLIENT", "DRIVER"))

    r = client.post(
        "/api/v1/auth/login",
        json={"email": "both@example.com", "password": PASSWORD, "selected_role": "DRIVER"},
    )
    assert r.status_code == 200
    assert r.json()["selected_role"] == "DRIVER"
    assert r.json()["redirect"] == "/dashboard/driver"

    switched = client.post("/api/v1/auth/switch-role", json={"role": "CLIENT"}, headers=auth_headers(user, "DRIVER"))
    assert switched.status_code == 200
    assert switched.json()["redirect"] == "/dashboard/client"

    denied = client.post("/api/v1/auth/switch-role", json={"role": "ADMIN"}, headers=auth_headers(user))
    assert denied.status_code == 403


def test_revoked_role_stops_working_with_old_token(client, db):
    user = make_user(db, "revoked@example.com", roles=("CLIENT", "DRIVER"))
    headers = auth_headers(user, "DRIVER")

    row = db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role == Role.DRIVER.value).one()
    row.is_active = False
    db.commit()

    me = client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["roles"] == ["CLIENT"]
    assert me.json()["selected_role"] == "CLIENT"

    requests = client.get("/api/v1/drivers/requests", headers=headers)
    assert requests.status_code == 403


def test_change_password(client, db):
    user = make_user(db, "pw@example.com")
    headers = auth_headers(user)

    wrong = client.post(
        "/api/v1/auth/change-password",
        json={"current_password": "Nope1234", "new_password": "Better1234"},
        headers=headers,
    )
    assert wrong.status_code == 400

    ok = client.post(
        "/api/v1/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "Better1234"},
        headers=headers,
    )
    assert ok.status_code == 200

    r = client.post("/api/v1/auth/login", json={"email": "pw@example.com", "password": "Better1234"})
    assert r.status_code == 200


def test_route_access(client, db):
    anon = client.get("/api/v1/auth/route-access", params={"path": "/dashboard/admin"})
    assert anon.json() == {
        "path": "/dashboard/admin",
        "allowed": False,
        "redirect": "/login?callbackUrl=%2Fdashboard%2Fadmin",
    }

    user = make_user(db, "reader@example.com")
    own = client.get("/api/v1/auth/route-access", params={"path": "/dashboard/client"}, headers=auth_headers(user))
    assert own.json()["allowed"] is True

    other = client.get("/api/v1/auth/route-access", params={"path": "/dashboard/admin"}, headers=auth_headers(user))
    assert other.json() == {"path": "/dashboard/admin", "allowed": False, "redirect": "/dashboard/client"}

    public = client.get("/api/v1/auth/route-access", params={"path": "/blog"})
    assert public.json()["allowed"] is True


def test_logout_clears_cookies(client):
    r = client.post("/api/v1/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"detail": "Logged out."}


def test_unauthenticated_me_is_401(client):
    r = client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"

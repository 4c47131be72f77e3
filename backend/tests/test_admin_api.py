# backend/tests/test_admin_api.py
from __future__ import annotations

from datetime import timedelta

from conftest import auth_headers, make_user
from crossborder.models import ClientProfile, Notification, Trip, TripStatus, User
from crossborder.services.formatting import utcnow
from crossborder.services.settings_store import DEFAULT_SETTINGS


def test_admin_routes_need_admin_role(client, db):
    customer = make_user(db, "client@example.com")
    assert client.get("/api/v1/admin/settings").status_code == 401
    assert client.get("/api/v1/admin/settings", headers=auth_headers(customer)).status_code == 403
    assert client.get("/api/v1/admin/users", headers=auth_headers(customer)).status_code == 403


def test_settings_defaults_replace_and_patch(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    headers = auth_headers(admin)

    fresh = client.get("/api/v1/admin/settings", headers=headers).json()
    assert fresh["settings"] == DEFAULT_SETTINGS
    assert fresh["last_updated"] is None

    missing = client.put("/api/v1/admin/settings", json={"settings": {"general": {"site_name": "X"}}}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "Missing required section: notifications"
    assert missing.json()["detail"]["code"] == "VALIDATION_ERROR"

    full = {section: dict(values) for section, values in DEFAULT_SETTINGS.items()}
    full["general"]["site_name"] = "Bay Area Rides"
    r = client.put("/api/v1/admin/settings", json={"settings": full}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["settings"]["general"]["site_name"] == "Bay Area Rides"

    stored = client.get("/api/v1/admin/settings", headers=headers).json()
    assert stored["updated_by"] == admin.id
    assert stored["last_updated"] is not None

    patched = client.patch(
        "/api/v1/admin/settings",
        json={"section": "payment", "data": {"base_fare": 60}},
        headers=headers,
    )
    assert patched.status_code == 200
    assert patched.json()["message"] == "payment settings updated successfully"
    assert patched.json()["data"]["base_fare"] == 60
    assert patched.json()["data"]["price_per_km"] == DEFAULT_SETTINGS["payment"]["price_per_km"]

    too_short = client.patch(
        "/api/v1/admin/settings",
        json={"section": "security", "data": {"session_timeout": 2}},
        headers=headers,
    )
    assert too_short.status_code == 400
    assert too_short.json()["message"] == "Session timeout must be between 5 and 480 minutes"

    negative = client.patch(
        "/api/v1/admin/settings",
        json={"section": "payment", "data": {"price_per_km": -1}},
        headers=headers,
    )
    assert negative.json()["message"] == "Payment rates cannot be negative"

    unknown = client.patch("/api/v1/admin/settings", json={"section": "theme", "data": {"a": 1}}, headers=headers)
    assert unknown.json()["message"] == "Unknown settings section: theme"

    # rejected patches leave the stored section alone
    after = client.get("/api/v1/admin/settings", headers=headers).json()["settings"]
    assert after["security"]["session_timeout"] == 30
    assert after["payment"]["base_fare"] == 60


def test_user_list_filters(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",), name="Admin")
    make_user(db, "chan@example.com", name="Chan Tai Man")
    make_user(db, "lee@example.com", roles=("DRIVER",), name="Lee Siu Long")
    headers = auth_headers(admin)

    everyone = client.get("/api/v1/admin/users", headers=headers).json()
    assert everyone["pagination"]["total"] == 3

    drivers = client.get("/api/v1/admin/users", params={"role": "DRIVER"}, headers=headers).json()
    assert [u["email"] for u in drivers["users"]] == ["lee@example.com"]

    search = client.get("/api/v1/admin/users", params={"search": "chan"}, headers=headers).json()
    assert [u["name"] for u in search["users"]] == ["Chan Tai Man"]


def test_bulk_actions(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")
    headers = auth_headers(admin)
    url = "/api/v1/admin/users/bulk"

    empty = client.post(url, json={"action": "activate"}, headers=headers)
    assert empty.status_code == 400
    assert empty.json()["message"] == "Action and user IDs are required"

    unknown = client.post(url, json={"action": "promote", "user_ids": [alice.id]}, headers=headers)
    assert unknown.json()["message"] == "Unknown action: promote"

    self_harm = client.post(url, json={"action": "deactivate", "user_ids": [alice.id, admin.id]}, headers=headers)
    assert self_harm.status_code == 400
    assert self_harm.json()["message"] == "You cannot deactivate your own account"

    r = client.post(url, json={"action": "deactivate", "user_ids": [alice.id, bob.id, alice.id]}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["affected_count"] == 2
    assert r.json()["user_ids"] == [alice.id, bob.id]

    db.expire_all()
    assert db.get(User, alice.id).is_active is False
    assert db.get(User, admin.id).is_active is True

    no_tier = client.post(url, json={"action": "upgrade_membership", "user_ids": [alice.id]}, headers=headers)
    assert no_tier.json()["message"] == "Membership tier is required for upgrade action"

    upgraded = client.post(
        url,
        json={"action": "upgrade_membership", "user_ids": [alice.id], "data": {"membership_tier": "GOLD"}},
        headers=headers,
    )
    assert upgraded.json()["affected_count"] == 1
    db.expire_all()
    assert db.query(ClientProfile).filter(ClientProfile.user_id == alice.id).one().membership_tier == "GOLD"

    sent = client.post(
        url,
        json={
            "action": "send_notification",
            "user_ids": [alice.id, bob.id, 9999],
            "data": {"title": "Maintenance", "message": "Service pauses at 02:00"},
        },
        headers=headers,
    )
    assert sent.json()["affected_count"] == 2
    assert db.query(Notification).filter(Notification.type == "SYSTEM_UPDATE").count() == 2

    export = client.post(url, json={"action": "export", "user_ids": [bob.id]}, headers=headers).json()
    assert export["message"] == "Export data prepared"
    assert export["data"][0]["email"] == "bob@example.com"
    assert export["data"][0]["role"] == "CLIENT"


def test_assign_and_revoke_roles(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    customer = make_user(db, "client@example.com")
    headers = auth_headers(admin)

    no_license = client.post(f"/api/v1/admin/users/{customer.id}/roles", json={"role": "DRIVER"}, headers=headers)
    assert no_license.status_code == 400
    assert no_license.json()["detail"]["code"] == "DRIVER_DATA_REQUIRED"

    r = client.post(
        f"/api/v1/admin/users/{customer.id}/roles",
        json={
            "role": "DRIVER",
            "license_number": "HKDL-778899",
            "license_expiry": (utcnow() + timedelta(days=700)).isoformat(),
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Role DRIVER assigned"
    assert set(r.json()["user"]["roles"]) == {"CLIENT", "DRIVER"}

    not_held = client.delete(f"/api/v1/admin/users/{customer.id}/roles/BLOG_EDITOR", headers=headers)
    assert not_held.status_code == 404

    revoked = client.delete(f"/api/v1/admin/users/{customer.id}/roles/CLIENT", headers=headers)
    assert revoked.json()["message"] == "Role CLIENT revoked"
    assert revoked.json()["user"]["roles"] == ["DRIVER"]

    last_admin = client.delete(f"/api/v1/admin/users/{admin.id}/roles/ADMIN", headers=headers)
    assert last_admin.status_code == 400
    assert last_admin.json()["message"] == "Cannot remove the last admin role in the system"

    missing = client.post("/api/v1/admin/users/9999/roles", json={"role": "CLIENT"}, headers=headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "User not found"


def test_second_admin_can_be_revoked(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    deputy = make_user(db, "deputy@example.com", roles=("ADMIN",))

    r = client.delete(f"/api/v1/admin/users/{deputy.id}/roles/ADMIN", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.json()["user"]["roles"] == []


def test_analytics(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    customer = make_user(db, "client@example.com")
    driver = make_user(db, "driver@example.com", roles=("DRIVER",))
    now = utcnow()

    for price, done in ((500, now - timedelta(days=2)), (700, now - timedelta(days=20))):
        db.add(
            Trip(
                client_id=customer.id,
                driver_id=driver.driver_profile.id,
                pickup_address="Central, Hong Kong",
                dropoff_address="Futian, Shenzhen",
                scheduled_date=done,
                vehicle_type="BUSINESS",
                total_price=price,
                status=TripStatus.COMPLETED.value,
                completed_at=done,
            )
        )
    driver.driver_profile.total_trips = 2
    db.commit()

    week = client.get("/api/v1/admin/analytics", params={"range": "7d"}, headers=auth_headers(admin)).json()
    assert week["range"] == "7d"
    assert week["revenue"] == 500.0
    assert week["users"]["total"] == 3
    assert week["trips"] == {"total": 2, "completed": 2}
    assert week["role_distribution"] == {"ADMIN": 1, "CLIENT": 1, "DRIVER": 1}
    assert week["trip_status_distribution"] == {"COMPLETED": 2}
    assert week["top_drivers"][0]["driver_id"] == driver.driver_profile.id

    month = client.get("/api/v1/admin/analytics", params={"range": "forever"}, headers=auth_headers(admin)).json()
    assert month["range"] == "30d"
    assert month["revenue"] == 1200.0

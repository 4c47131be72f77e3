# backend/tests/test_fleet_api.py
from __future__ import annotations

from datetime import timedelta

from conftest import auth_headers, make_user, make_vehicle
from crossborder.models import Notification, Trip, TripStatus
from crossborder.services.formatting import utcnow


def _vehicle_body(**overrides):
    body = {
        "make": "Mercedes-Benz",
        "model": "V-Class",
        "year": 2023,
        "color": "Silver",
        "plate_number": "ab 1234",
        "vin": "wdd1234567890",
        "vehicle_type": "VAN",
        "capacity": 7,
        "features": ["wifi", "child_seat"],
    }
    body.update(overrides)
    return body


def _permit_body(**overrides):
    now = utcnow()
    body = {
        "permit_type": "CLOSED_ROAD",
        "permit_number": "CRP-2026-001",
        "issuing_authority": "Transport Department",
        "start_date": (now - timedelta(days=300)).isoformat(),
        "expiry_date": (now + timedelta(days=200)).isoformat(),
    }
    body.update(overrides)
    return body


def test_vehicle_crud(client, db):
    driver = make_user(db, "driver@example.com", roles=("DRIVER",))
    headers = auth_headers(driver)

    r = client.post("/api/v1/drivers/vehicles", json=_vehicle_body(), headers=headers)
    assert r.status_code == 201, r.text
    vehicle = r.json()["vehicle"]
    assert r.json()["message"] == "Vehicle created successfully"
    assert vehicle["plate_number"] == "AB 1234"
    assert vehicle["vin"] == "WDD1234567890"
    assert vehicle["features"] == ["wifi", "child_seat"]
    assert vehicle["has_expiring_documents"] is False

    dup = client.post("/api/v1/drivers/vehicles", json=_vehicle_body(vin=None), headers=headers)
    assert dup.status_code == 409
    assert dup.json()["message"] == "Vehicle with this plate number already exists"

    dup_vin = client.post("/api/v1/drivers/vehicles", json=_vehicle_body(plate_number="ZZ 9"), headers=headers)
    assert dup_vin.status_code == 409
    assert dup_vin.json()["message"] == "Vehicle with this VIN already exists"

    listed = client.get("/api/v1/drivers/vehicles", headers=headers).json()["vehicles"]
    assert [v["id"] for v in listed] == [vehicle["id"]]

    updated = client.put(
        f"/api/v1/drivers/vehicles/{vehicle['id']}",
        json={"color": "Black", "is_active": False},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["vehicle"]["color"] == "Black"
    assert updated.json()["vehicle"]["is_active"] is False

    deleted = client.delete(f"/api/v1/drivers/vehicles/{vehicle['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["message"] == "Vehicle deleted successfully"
    assert client.get(f"/api/v1/drivers/vehicles/{vehicle['id']}", headers=headers).status_code == 404


def test_vehicles_are_private_to_their_driver(client, db):
    owner = make_user(db, "owner@example.com", roles=("DRIVER",))
    other = make_user(db, "other@example.com", roles=("DRIVER",))
    vehicle = make_vehicle(db, owner.driver_profile)

    r = client.get(f"/api/v1/drivers/vehicles/{vehicle.id}", headers=auth_headers(other))
    assert r.status_code == 404
    assert r.json()["message"] == "Vehicle not found"

    assert client.get("/api/v1/drivers/vehicles", headers=auth_headers(other)).json() == {"vehicles": []}


def test_vehicle_update_rejects_null_for_required_fields(client, db):
    driver = make_user(db, "driver@example.com", roles=("DRIVER",))
    headers = auth_headers(driver)
    vehicle = make_vehicle(db, driver.driver_profile)
    url = f"/api/v1/drivers/vehicles/{vehicle.id}"

    for field in ("make", "plate_number", "vehicle_type", "capacity"):
        r = client.put(url, json={field: None}, headers=headers)
        assert r.status_code == 400, r.text
        assert r.json()["message"] == f"{field} cannot be null"

    cleared = client.put(url, json={"vin": None, "fuel_type": None}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.json()["vehicle"]["make"] == "Toyota"
    assert cleared.json()["vehicle"]["plate_number"] == "HK1234"


def test_vehicle_with_live_trip_cannot_be_deleted(client, db):
    customer = make_user(db, "client@example.com")
    driver = make_user(db, "driver@example.com", roles=("DRIVER",))
    vehicle = make_vehicle(db, driver.driver_profile)

    db.add(
        Trip(
            client_id=customer.id,
            driver_id=driver.driver_profile.id,
            vehicle_id=vehicle.id,
            pickup_address="Central, Hong Kong",
            dropoff_address="Futian, Shenzhen",
            scheduled_date=utcnow() + timedelta(days=1),
            vehicle_type="BUSINESS",
            status=TripStatus.IN_PROGRESS.value,
        )
    )
    db.commit()

    r = client.delete(f"/api/v1/drivers/vehicles/{vehicle.id}", headers=auth_headers(driver))
    assert r.status_code == 409


def test_permits_and_licenses(client, db):
    driver = make_user(db, "driver@example.com", roles=("DRIVER",))
    vehicle = make_vehicle(db, driver.driver_profile)
    headers = auth_headers(driver)
    url = f"/api/v1/drivers/vehicles/{vehicle.id}/permits"

    r = client.post(url, json=_permit_body(), headers=headers)
    assert r.status_code == 201, r.text
    permit = r.json()["permit"]
    assert permit["type"] == "CLOSED_ROAD"
    assert permit["status"] == "PENDING"
    assert permit["is_expiring"] is False

    dup = client.post(url, json=_permit_body(), headers=headers)
    assert dup.status_code == 409
    assert dup.json()["message"] == "Permit with this type and number already exists for this vehicle"

    backwards = client.post(
        url,
        json=_permit_body(permit_number="X-2", expiry_date=(utcnow() - timedelta(days=400)).isoformat()),
        headers=headers,
    )
    assert backwards.status_code == 400
    assert backwards.json()["message"] == "Expiry date must be after start date"

    soon = client.post(
        url,
        json=_permit_body(permit_number="X-3", expiry_date=(utcnow() + timedelta(days=5)).isoformat()),
        headers=headers,
    )
    assert soon.status_code == 201
    assert soon.json()["permit"]["is_expiring"] is True

    warning = db.query(Notification).filter(Notification.user_id == driver.id).one()
    assert warning.type == "PERMIT_EXPIRING"

    permits = client.get(url, headers=headers).json()["permits"]
    assert len(permits) == 2

    lic = client.post(
        f"/api/v1/drivers/vehicles/{vehicle.id}/licenses",
        json={
            "license_type": "VEHICLE_LICENSE",
            "license_number": "VL-88",
            "issuing_authority": "Transport Department",
            "start_date": (utcnow() - timedelta(days=10)).isoformat(),
            "expiry_date": (utcnow() + timedelta(days=365)).isoformat(),
        },
        headers=headers,
    )
    assert lic.status_code == 201, lic.text
    assert lic.json()["license"]["number"] == "VL-88"

    detail = client.get(f"/api/v1/drivers/vehicles/{vehicle.id}", headers=headers).json()["vehicle"]
    assert detail["expiring_permits"] == 1
    assert detail["has_expiring_documents"] is True
    assert len(detail["licenses"]) == 1


def test_verification_upload_and_admin_review(client, db):
    admin = make_user(db, "admin@example.com", roles=("ADMIN",))
    driver = make_user(db, "driver@example.com", roles=("DRIVER",), name="Driver Lee")
    headers = auth_headers(driver)

    empty = client.get("/api/v1/drivers/verification", headers=headers).json()
    assert empty["verification_status"]["missing_docs"] == empty["required_documents"]
    assert empty["max_file_size"] == 10 * 1024 * 1024

    too_big = client.post(
        "/api/v1/drivers/verification",
        json={
            "document_type": "DRIVING_LICENSE",
            "file_url": "https://files.example/dl.pdf",
            "file_name": "dl.pdf",
            "file_size": 11 * 1024 * 1024,
            "mime_type": "application/pdf",
        },
        headers=headers,
    )
    assert too_big.status_code == 400
    assert too_big.json()["message"] == "File size too large. Maximum 10MB allowed."

    up = client.post(
        "/api/v1/drivers/verification",
        json={
            "document_type": "DRIVING_LICENSE",
            "file_url": "https://files.example/dl.pdf",
            "file_name": "dl.pdf",
            "file_size": 2048,
            "mime_type": "application/pdf",
        },
        headers=headers,
    )
    assert up.status_code == 201, up.text
    doc_id = up.json()["document"]["id"]

    admin_note = db.query(Notification).filter(Notification.user_id == admin.id).one()
    assert admin_note.type == "DOCUMENT_UPLOADED"
    assert "Driver Lee" in admin_note.message

    queue = client.get("/api/v1/admin/verification", headers=auth_headers(admin)).json()["documents"]
    assert [d["id"] for d in queue] == [doc_id]

    bad = client.patch(
        f"/api/v1/admin/verification/{doc_id}",
        json={"status": "PENDING"},
        headers=auth_headers(admin),
    )
    assert bad.status_code == 400

    rejected = client.patch(
        f"/api/v1/admin/verification/{doc_id}",
        json={"status": "REJECTED", "admin_notes": "Photo is blurry"},
        headers=auth_headers(admin),
    )
    assert rejected.status_code == 200, rejected.text
    assert rejected.json()["message"] == "Document rejected"
    assert rejected.json()["document"]["reviewed_at"] is not None

    driver_note = db.query(Notification).filter(Notification.user_id == driver.id).one()
    assert driver_note.type == "DOCUMENT_REJECTED"
    assert driver_note.message.endswith("Photo is blurry")

    status = client.get("/api/v1/drivers/verification", headers=headers).json()["verification_status"]
    assert status["rejected_docs"] == ["DRIVING_LICENSE"]

    missing = client.patch(
        "/api/v1/admin/verification/9999",
        json={"status": "APPROVED"},
        headers=auth_headers(admin),
    )
    assert missing.status_code == 404

    forbidden = client.get("/api/v1/admin/verification", headers=headers)
    assert forbidden.status_code == 403

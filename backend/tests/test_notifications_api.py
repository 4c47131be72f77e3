# backend/tests/test_notifications_api.py
from __future__ import annotations

from conftest import auth_headers, make_user
from crossborder.models import NotificationType
from crossborder.services.notifications import notify


def _seed(db, user, count=3):
    notes = [
        notify(db, user.id, NotificationType.TRIP_ACCEPTED, f"Update {i}", "Your driver is on the way", {"trip_id": i})
        for i in range(count)
    ]
    db.commit()
    return notes


def test_list_and_mark_read(client, db):
    user = make_user(db, "client@example.com")
    notes = _seed(db, user)
    headers = auth_headers(user)

    body = client.get("/api/v1/notifications", headers=headers).json()
    assert body["unread_count"] == 3
    assert [n["title"] for n in body["notifications"]] == ["Update 2", "Update 1", "Update 0"]
    assert body["notifications"][0]["data"] == {"trip_id": 2}
    assert body["notifications"][0]["time_ago"] == "just now"

    r = client.post(f"/api/v1/notifications/{notes[0].id}/read", headers=headers)
    assert r.status_code == 200
    assert r.json()["notification"]["is_read"] is True

    unread = client.get("/api/v1/notifications", params={"unread_only": True}, headers=headers).json()
    assert unread["unread_count"] == 2
    assert len(unread["notifications"]) == 2

    everything = client.post("/api/v1/notifications/read-all", headers=headers)
    assert everything.json() == {"message": "All notifications marked as read", "updated": 2}
    assert client.get("/api/v1/notifications", headers=headers).json()["unread_count"] == 0


def test_cannot_read_someone_elses_notification(client, db):
    owner = make_user(db, "owner@example.com")
    other = make_user(db, "other@example.com")
    note = _seed(db, owner, count=1)[0]

    r = client.post(f"/api/v1/notifications/{note.id}/read", headers=auth_headers(other))
    assert r.status_code == 404
    assert r.json()["message"] == "Notification not found"

    assert client.get("/api/v1/notifications", headers=auth_headers(other)).json()["notifications"] == []


def test_notifications_need_a_session(client):
    assert client.get("/api/v1/notifications").status_code == 401

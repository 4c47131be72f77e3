# backend/tests/test_health.py
from __future__ import annotations

from sqlalchemy.exc import OperationalError

from crossborder.db.session import get_db
from crossborder.main import app


def test_liveness(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"] == "crossborder-backend"
    assert "timestamp_utc" in body


def test_db_probe_up(client):
    r = client.get("/api/v1/health/db")
    assert r.status_code == 200
    assert r.json()["db"] == "up"
    assert r.json()["backend"] == "sqlite"
    assert r.json()["latency_ms"] >= 0


class _BrokenSession:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_db_probe_down(client):
    app.dependency_overrides[get_db] = lambda: _BrokenSession()

    r = client.get("/api/v1/health/db")
    assert r.status_code == 503
    assert r.json()["detail"]["db"] == "down"
    assert r.json()["detail"]["code"] == "DB_UNAVAILABLE"

# backend/tests/test_error_contract.py

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel

# Import the real exception handlers (do NOT rely on FastAPI defaults)
from crossborder.main import http_exception_handler, validation_exception_handler


class _Body(BaseModel):
    passenger_count: int


def _app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    r = APIRouter()

    @r.get("/boom")
    def boom():
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_TRANSITION", "message": "Trip is no longer available", "trip_id": 9},
        )

    @r.get("/plain")
    def plain():
        raise HTTPException(status_code=404, detail="Nothing here")

    @r.post("/typed")
    def typed(body: _Body):
        return body

    app.include_router(r, prefix="/api/v1")
    return app


def test_http_exception_detail_dict_is_preserved_and_merged():
    client = TestClient(_app())
    resp = client.get("/api/v1/boom")
    assert resp.status_code == 400

    body = resp.json()
    assert body["code"] == "HTTP_400"
    assert body["error"] == "Trip is no longer available"
    assert body["message"] == "Trip is no longer available"

    # Structured detail dict is preserved, router code wins over the generic one
    assert body["detail"]["code"] == "INVALID_TRANSITION"
    assert body["detail"]["trip_id"] == 9

    assert isinstance(body["request_id"], str)
    assert len(body["request_id"]) > 0
    assert resp.headers["X-Request-ID"] == body["request_id"]


def test_plain_string_detail_gets_structured_shape():
    client = TestClient(_app())
    resp = client.get("/api/v1/plain")
    assert resp.status_code == 404

    body = resp.json()
    assert body["error"] == "Nothing here"
    assert body["detail"] == {"code": "HTTP_404", "message": "Nothing here"}


def test_validation_errors_use_validation_error_code():
    client = TestClient(_app())
    resp = client.post("/api/v1/typed", json={"passenger_count": "lots"})
    assert resp.status_code == 422

    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"]
    assert body["errors"][0]["loc"][-1] == "passenger_count"


def test_real_app_echoes_incoming_request_id(client):
    resp = client.get("/api/v1/bookings", headers={"X-Request-ID": "trace-123"})
    assert resp.status_code == 401
    assert resp.headers["X-Request-ID"] == "trace-123"
    assert resp.json()["request_id"] == "trace-123"

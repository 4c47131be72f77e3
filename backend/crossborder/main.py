# backend/crossborder/main.py

import logging
import time
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from crossborder.core.config import settings
from crossborder.core.errors import install_request_logging, log_unhandled
from crossborder.core.rate_limit import client_ip
from crossborder.core.request_context import RequestState, begin_request, end_request, get_request_id

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s request_id=%(request_id)s user=%(user_id)s role=%(acting_role)s %(message)s",
)
install_request_logging()

logger = logging.getLogger("crossborder")

enable_docs = bool(settings.enable_docs)
logger.info("Startup: environment=%s enable_docs=%s", settings.environment, enable_docs)

# Backend type only (sqlite, postgresql, ...), never the credentials
logger.info("DB backend detected: %s", (settings.database_url or "").split(":", 1)[0] or "unknown")

app = FastAPI(
    title="CrossBorder Transportation API",
    version=settings.version,
    openapi_url="/api/v1/openapi.json" if enable_docs else None,
    docs_url="/api/v1/docs" if enable_docs else None,
    redoc_url="/api/v1/redoc" if enable_docs else None,
)


def _get_request_id(request: Request) -> str:
    """Reuse a proxy-supplied request id when present, else mint one."""
    incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
    if incoming and incoming.strip():
        return incoming.strip()[:128]
    return uuid.uuid4().hex


def _request_id_of(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid:
        return rid
    current = get_request_id()
    return current if current != "-" else uuid.uuid4().hex


def error_body(code: str, message: str, request_id: str, detail: Optional[dict] = None, **extra: Any) -> dict:
    """
    The body every failure renders. `detail` always holds at least code and
    message, and keeps any extra keys a router attached (attempts_remaining,
    retry_after, ...), so clients can branch on detail.code.
    """
    body: dict[str, Any] = {
        "error": message,
        "code": code,
        "message": message,
        "request_id": request_id,
        "detail": {"code": code, "message": message, **(detail or {})},
    }
    body.update(extra)
    return body


def _error_response(status_code: int, body: dict, request_id: str, headers: Optional[dict] = None) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=body, headers=headers)
    resp.headers["X-Request-ID"] = request_id
    return resp


def _validation_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raw exception object, and input may echo passwords
    out = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k != "input"}
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in item["ctx"].items()}
        out.append(item)
    return out


# --- Exception handlers ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    request_id = _request_id_of(request)
    code = f"HTTP_{exc.status_code}"

    if isinstance(exc.detail, dict):
        message = exc.detail.get("message")
        if not isinstance(message, str) or not message.strip():
            message = "Request failed."
        body = error_body(code, message, request_id, detail=exc.detail)
    else:
        message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed."
        body = error_body(code, message, request_id)

    return _error_response(exc.status_code, body, request_id, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id_of(request)
    body = error_body(
        "VALIDATION_ERROR",
        "Validation error. Check request body/query parameters.",
        request_id,
        errors=_validation_errors(exc),
    )
    return _error_response(422, body, request_id)


# --- Observability middleware: request id, timing, structured request log ---
def _log_request(request: Request, state: RequestState, status_code: int, duration_ms: float) -> None:
    slow = duration_ms >= float(settings.slow_http_ms)
    (logger.warning if slow else logger.info)(
        "req method=%s path=%s status=%s duration_ms=%.2f db_total_ms=%.2f db_q=%s db_slowest_ms=%.2f ip=%s",
        request.method,
        request.url.path,
        status_code,
        duration_ms,
        state.db_total_ms,
        state.query_count,
        state.slowest_query_ms,
        client_ip(request),
    )
    if state.db_total_ms >= float(settings.slow_db_total_ms):
        logger.warning(
            "slow_db_total method=%s path=%s db_total_ms=%.2f db_q=%s slowest_sql=%s",
            request.method,
            request.url.path,
            state.db_total_ms,
            state.query_count,
            state.slowest_sql if settings.log_db_sql else "-",
        )


@app.middleware("http")
async def request_observability(request: Request, call_next):
    state = begin_request(_get_request_id(request))
    request.state.request_id = state.request_id

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    except Exception as e:
        log_unhandled("Unhandled error", method=request.method, path=request.url.path, error=type(e).__name__)
        response = JSONResponse(
            status_code=500,
            content=error_body("INTERNAL_ERROR", "Internal Server Error", state.request_id),
        )
    finally:
        _log_request(request, state, status_code, (time.perf_counter() - start) * 1000.0)
        end_request()

    response.headers["X-Request-ID"] = state.request_id
    return response


# --- CORS ---
allowed = settings.cors_origins()
logger.info("CORS allow_origins=%s", allowed)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
from crossborder.api.v1 import (  # noqa: E402
    admin,
    auth,
    blog,
    bookings,
    client,
    driver_trips,
    driver_vehicles,
    driver_verification,
    health,
    notifications,
    password_recovery,
)

app.include_router(health.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(password_recovery.router, prefix="/api/v1")
app.include_router(bookings.router, prefix="/api/v1")
app.include_router(driver_vehicles.router, prefix="/api/v1")
app.include_router(driver_verification.router, prefix="/api/v1")
app.include_router(driver_trips.router, prefix="/api/v1")
app.include_router(client.router, prefix="/api/v1")
app.include_router(blog.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
def root():
    if enable_docs:
        return RedirectResponse(url="/api/v1/docs")
    return {"status": "CrossBorder API is running. See /api/v1/health."}

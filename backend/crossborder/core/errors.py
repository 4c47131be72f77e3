# backend/crossborder/core/errors.py

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable

from fastapi import HTTPException, status

from crossborder.core.request_context import current_request, get_request_id

logger = logging.getLogger("crossborder")


class ErrorCode(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    USER_EXISTS = "USER_EXISTS"
    USER_DISABLED = "USER_DISABLED"
    NO_ACTIVE_ROLE = "NO_ACTIVE_ROLE"
    INVALID_ROLE = "INVALID_ROLE"
    DRIVER_DATA_REQUIRED = "DRIVER_DATA_REQUIRED"
    LICENSE_EXISTS = "LICENSE_EXISTS"
    INVITATION_REQUIRED = "INVITATION_REQUIRED"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    LOGIN_LOCKED = "LOGIN_LOCKED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    BAD_REQUEST = "BAD_REQUEST"


def api_error(status_code: int, code: ErrorCode | str, message: str, **extra: Any) -> HTTPException:
    """
    Build an HTTPException whose detail follows the structured contract
    rendered by the handlers in main.py.
    """
    detail: dict[str, Any] = {"code": str(getattr(code, "value", code)), "message": message}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def bad_request(message: str, code: ErrorCode | str = ErrorCode.BAD_REQUEST, **extra: Any) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, code, message, **extra)


def reject_nulls(changes: dict[str, Any], required: Iterable[str]) -> None:
    """Partial updates may omit a required column but never set it to null."""
    for key in required:
        if key in changes and changes[key] is None:
            raise bad_request(f"{key} cannot be null", ErrorCode.VALIDATION_ERROR, field=key)


def forbidden(message: str ="Insufficient permissions for this operation.") -> HTTPException:
    return api_error(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, message)


def not_found(message: str) -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, message)


def conflict(message: str) -> HTTPException:
    return api_error(status.HTTP_409_CONFLICT, ErrorCode.CONFLICT, message)


class RequestContextFilter(logging.Filter):
    """
    Copies the request id and the acting user/role onto each LogRecord so
    formatters can use %(request_id)s, %(user_id)s and %(acting_role)s.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        state = current_request()
        record.request_id = state.request_id if state else "-"
        record.user_id = state.user_id if state and state.user_id is not None else "-"
        record.acting_role = state.acting_role if state and state.acting_role else "-"
        return True


def install_request_logging() -> None:
    """
    Attach RequestContextFilter to the root handlers. Handler filters see
    records propagated from every child logger, logger filters do not.
    """
    filt = RequestContextFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(filt)


def log_unhandled(message: str, **context: Any) -> None:
    """Log the exception being handled, with its traceback and request context."""
    pairs = " ".join(f"{k}={v}" for k, v in context.items())
    logger.exception("%s request_id=%s %s", message, get_request_id(), pairs)

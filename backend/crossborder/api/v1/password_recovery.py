# backend/crossborder/api/v1/password_recovery.py
from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from crossborder.core.config import settings
from crossborder.core.email import send_email
from crossborder.core.rate_limit import client_ip, login_attempts, login_rate_limit
from crossborder.core.security import hash_password, hash_token
from crossborder.db.session import get_db
from crossborder.models import PasswordResetToken, User
from crossborder.services.formatting import as_aware_utc, utcnow
from crossborder.services.validation import check_password, normalize_email

logger = logging.getLogger("crossborder.security")

router = APIRouter(prefix="/auth/password", tags=["auth"])

RESET_TOKEN_PREFIX = "cb_pwd_"


class ForgotPasswordIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class ForgotPasswordOut(BaseModel):
    detail: str
    # dev only
    debug_reset_link: Optional[str] = None


class ResetPasswordIn(BaseModel):
    token: str = Field(..., max_length=512)
    new_password: str = Field(..., max_length=256)


class ResetPasswordOut(BaseModel):
    detail: str


def _token_error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


@router.post(
    "/forgot",
    response_model=ForgotPasswordOut,
    dependencies=[Depends(login_rate_limit)],
)
def forgot_password(payload: ForgotPasswordIn, request: Request, db: Session = Depends(get_db)) -> ForgotPasswordOut:
    email = normalize_email(payload.email)

    # Same answer whether or not the account exists
    generic = "If the email exists, a password reset link has been sent."

    user = db.query(User).filter(User.email == email).first() if email else None
    if user is None or not bool(user.is_active):
        return ForgotPasswordOut(detail=generic)

    raw = RESET_TOKEN_PREFIX + secrets.token_urlsafe(32)
    now = utcnow()

    db.add(
        PasswordResetToken(
            user_id=user.id,
            email=email,
            token_hash=hash_token(raw),
            expires_at=now + timedelta(minutes=settings.password_reset_expire_minutes),
            used_at=None,
            request_ip=client_ip(request),
            user_agent=(request.headers.get("user-agent") or "")[:512] or None,
        )
    )
    db.commit()

    reset_link = f"{settings.frontend_url.rstrip('/')}/reset-password?token={raw}"
    send_email(
        to_email=email,
        subject="Reset your CrossBorder password",
        text_body=(
            f"Hi {user.name},\n\n"
            "We received a request to reset your CrossBorder Transportation password.\n\n"
            f"Reset link (valid for {settings.password_reset_expire_minutes} minutes):\n{reset_link}\n\n"
            "If you did not request this, you can ignore this email."
        ),
    )
    logger.info("password_reset_requested user_id=%s", user.id)

    if settings.environment == "dev" and settings.debug:
        return ForgotPasswordOut(detail=generic, debug_reset_link=reset_link)

    return ForgotPasswordOut(detail=generic)


@router.post(
    "/reset",
    response_model=ResetPasswordOut,
    dependencies=[Depends(login_rate_limit)],
)
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)) -> ResetPasswordOut:
    token = (payload.token or "").strip()
    new_pw = payload.new_password or ""

    if not token.startswith(RESET_TOKEN_PREFIX):
        raise _token_error(status.HTTP_400_BAD_REQUEST, "BAD_TOKEN", "Invalid token.")

    problem = check_password(new_pw)
    if problem:
        raise _token_error(status.HTTP_400_BAD_REQUEST, "WEAK_PASSWORD", problem)

    rec = db.query(PasswordResetToken).filter(PasswordResetToken.token_hash == hash_token(token)).first()
    if rec is None:
        raise _token_error(status.HTTP_400_BAD_REQUEST, "BAD_TOKEN", "Invalid token.")

    if rec.used_at is not None:
        raise _token_error(status.HTTP_409_CONFLICT, "TOKEN_USED", "Token already used.")

    now = utcnow()
    expires_at = as_aware_utc(rec.expires_at)
    if expires_at is None or expires_at < now:
        raise _token_error(status.HTTP_410_GONE, "TOKEN_EXPIRED", "Token expired.")

    user = db.query(User).filter(User.id == rec.user_id).first()
    if user is None:
        raise _token_error(status.HTTP_404_NOT_FOUND, "USER_NOT_FOUND", "User not found.")
    if not bool(user.is_active):
        raise _token_error(status.HTTP_403_FORBIDDEN, "USER_DISABLED", "User access is disabled.")

    user.hashed_password = hash_password(new_pw)
    rec.used_at = now
    db.add(user)
    db.add(rec)
    db.commit()

    # a fresh password lifts any login lockout
    login_attempts.register_success(user.email)
    logger.info("password_reset_completed user_id=%s", user.id)

    return ResetPasswordOut(detail="Password updated. You can now sign in.")

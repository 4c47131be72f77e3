# backend/crossborder/api/v1/auth.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError, jwt
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, get_current_context, get_optional_context
from crossborder.core.config import settings
from crossborder.core.errors import ErrorCode, api_error, bad_request, forbidden
from crossborder.core.rate_limit import (
    client_ip,
    login_attempts,
    login_rate_limit,
    refresh_rate_limit,
    register_rate_limit,
)
from crossborder.core.security import (
    ALGORITHM,
    SECRET_KEY,
    create_access_token,
    create_refresh_token,
    hash_password,
    session_claims,
    verify_password,
)
from crossborder.db.session import get_db
from crossborder.models import DriverProfile, Role, User
from crossborder.services.accounts import ensure_profile, grant_role, profile_summaries, user_to_dict
from crossborder.services.formatting import as_aware_utc, utcnow
from crossborder.services.notifications import unread_count
from crossborder.services.roles import dashboard_path, has_route_access, select_role
from crossborder.services.validation import (
    check_email,
    check_name,
    check_password,
    check_phone,
    normalize_email,
)

logger = logging.getLogger("crossborder.security")

router = APIRouter(prefix="/auth", tags=["auth"])

SELF_SERVICE_ROLES = {Role.CLIENT.value, Role.DRIVER.value, Role.BLOG_EDITOR.value}


# === Schemas ===

class DriverData(BaseModel):
    license_number: Optional[str] = None
    license_expiry: Optional[datetime] = None
    languages: List[str] = Field(default_factory=list)


class RegisterIn(BaseModel):
    email: str
    password: str
    name: str
    phone: Optional[str] = None
    role: str = Role.CLIENT.value
    driver_data: Optional[DriverData] = None
    editor_invite_code: Optional[str] = None


class LoginIn(BaseModel):
    email: str
    password: str
    selected_role: Optional[str] = None


class SwitchRoleIn(BaseModel):
    role: str


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


# === Cookie / session helpers ===

def _set_session_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    secure_flag = settings.is_prod
    response.set_cookie(
        key=settings.session_cookie_name,
        value=access_token,
        httponly=True,
        secure=secure_flag,
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        httponly=True,
        secure=secure_flag,
        samesite="lax",
        max_age=settings.refresh_token_expire_days * 24 * 3600,
        path="/",
    )


def _clear_session_cookies(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.refresh_cookie_name, path="/")


def _issue_session(response: Response, user: User, roles: List[str], selected_role: Optional[str]) -> str:
    claims = session_claims(user, roles, selected_role)
    access = create_access_token(claims)
    _set_session_cookies(response, access, create_refresh_token(claims))
    return access


def _ensure_can_sign_in(user: User) -> List[str]:
    if not bool(user.is_active):
        raise api_error(status.HTTP_403_FORBIDDEN, ErrorCode.USER_DISABLED, "User access has been disabled.")
    roles = user.active_roles
    if not roles:
        raise api_error(status.HTTP_403_FORBIDDEN, ErrorCode.NO_ACTIVE_ROLE, "No active role assigned to this account.")
    return roles


def _validate_registration(payload: RegisterIn) -> None:
    errors = {}
    for field_name, message in (
        ("name", check_name(payload.name)),
        ("email", check_email(payload.email)),
        ("phone", check_phone(payload.phone)),
        ("password", check_password(payload.password)),
    ):
        if message:
            errors[field_name] = message

    if errors:
        first = next(iter(errors.values()))
        raise bad_request(first, ErrorCode.VALIDATION_ERROR, errors=errors)


def _validate_role_requirements(payload: RegisterIn, db: Session) -> None:
    if payload.role not in SELF_SERVICE_ROLES:
        raise bad_request("Invalid role for registration", ErrorCode.INVALID_ROLE)

    if payload.role == Role.DRIVER.value:
        data = payload.driver_data
        expiry = as_aware_utc(data.license_expiry) if data else None
        if (
            data is None
            or not (data.license_number or "").strip()
            or expiry is None
            or expiry <= utcnow()
            or not [lang for lang in data.languages if lang.strip()]
        ):
            raise bad_request(
                "Driver registration requires a license number, a future license expiry and at least one language",
                ErrorCode.DRIVER_DATA_REQUIRED,
            )
        taken = (
            db.query(DriverProfile)
            .filter(DriverProfile.license_number == data.license_number.strip())
            .first()
        )
        if taken is not None:
            raise bad_request("License number already registered", ErrorCode.LICENSE_EXISTS)

    if payload.role == Role.BLOG_EDITOR.value:
        if (payload.editor_invite_code or "").strip() != settings.editor_invite_code:
            raise bad_request("A valid invitation code is required to register as an editor", ErrorCode.INVITATION_REQUIRED)


def _attach_role(user: User, payload: RegisterIn) -> None:
    grant_role(user, payload.role)
    data = payload.driver_data
    ensure_profile(
        user,
        payload.role,
        license_number=data.license_number.strip() if data and data.license_number else None,
        license_expiry=data.license_expiry if data else None,
        languages=[lang.strip() for lang in data.languages if lang.strip()] if data else None,
    )


# === Routes ===

@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(register_rate_limit)],
)
def register(payload: RegisterIn, db: Session = Depends(get_db)) -> dict:
    """
    Self-service registration as CLIENT, DRIVER or BLOG_EDITOR.

    An existing account (matching password) may register for an additional
    role; the new role's profile is created alongside.
    """
    _validate_registration(payload)
    _validate_role_requirements(payload, db)

    email_norm = normalize_email(payload.email)
    requires_approval = payload.role != Role.CLIENT.value

    existing = db.query(User).filter(User.email == email_norm).first()
    if existing is not None:
        if not verify_password(payload.password, existing.hashed_password):
            raise bad_request("An account with this email already exists", ErrorCode.USER_EXISTS)
        if payload.role in existing.active_roles:
            raise bad_request(f"This account already has the {payload.role} role", ErrorCode.USER_EXISTS)

        _attach_role(existing, payload)
        db.commit()
        db.refresh(existing)
        logger.info("role_added_via_register user_id=%s role=%s", existing.id, payload.role)
        return {
            "user": user_to_dict(existing),
            "message": f"{payload.role} role added to your account",
            "requires_approval": requires_approval,
        }

    user = User(
        email=email_norm,
        name=payload.name.strip(),
        phone=(payload.phone or "").strip() or None,
        hashed_password=hash_password(payload.password),
        is_verified=payload.role == Role.CLIENT.value,
        is_active=True,
    )
    db.add(user)
    _attach_role(user, payload)
    db.commit()
    db.refresh(user)

    logger.info("user_registered user_id=%s role=%s", user.id, payload.role)
    message = (
        "Registration successful. Your account is pending approval."
        if requires_approval
        else "Registration successful"
    )
    return {"user": user_to_dict(user), "message": message, "requires_approval": requires_approval}


def _login(
    db: Session,
    response: Response,
    request: Request,
    email: str,
    password: str,
    requested_role: Optional[str],
) -> dict:
    email_norm = normalize_email(email)

    locked_for = login_attempts.remaining_lockout(email_norm)
    if locked_for:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": ErrorCode.LOGIN_LOCKED.value,
                "message": "Too many failed login attempts. Try again later.",
                "retry_after_seconds": locked_for,
            },
            headers={"Retry-After": str(locked_for)},
        )

    user = db.query(User).filter(User.email == email_norm).first()
    if user is None or not verify_password(password, user.hashed_password):
        remaining = login_attempts.register_failure(email_norm)
        logger.warning("login_failed email=%s ip=%s remaining=%s", email_norm, client_ip(request), remaining)
        raise api_error(
            status.HTTP_401_UNAUTHORIZED,
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid email or password",
            attempts_remaining=remaining,
        )

    roles = _ensure_can_sign_in(user)
    login_attempts.register_success(email_norm)

    selected = select_role(roles, requested_role)
    access = _issue_session(response, user, roles, selected)

    logger.info("login_ok user_id=%s selected_role=%s", user.id, selected)
    return {
        "access_token": access,
        "token_type": "bearer",
        "user": user_to_dict(user, roles),
        "selected_role": selected,
        "roles": roles,
        "redirect": dashboard_path(selected),
    }


@router.post("/login", dependencies=[Depends(login_rate_limit)])
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_db)) -> dict:
    return _login(db, response, request, payload.email, payload.password, payload.selected_role)


@router.post("/token", dependencies=[Depends(login_rate_limit)])
def login_form(
    request: Request,
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
) -> dict:
    """
    OAuth2 password flow (application/x-www-form-urlencoded: username, password).
    Used by the OpenAPI "Authorize" button.
    """
    return _login(db, response, request, form_data.username, form_data.password, None)


@router.post("/refresh", dependencies=[Depends(refresh_rate_limit)])
def refresh_session(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=settings.refresh_cookie_name),
    db: Session = Depends(get_db),
) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not refresh credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not refresh_token:
        raise credentials_exception

    try:
        payload = jwt.decode(refresh_token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("type") != "refresh" or not payload.get("sub"):
        raise credentials_exception

    user = db.query(User).filter(User.email == str(payload["sub"]).strip().lower()).first()
    if user is None:
        raise credentials_exception

    roles = _ensure_can_sign_in(user)
    selected = select_role(roles, payload.get("selected_role"))
    access = _issue_session(response, user, roles, selected)

    return {
        "access_token": access,
        "token_type": "bearer",
        "selected_role": selected,
        "roles": roles,
        "redirect": dashboard_path(selected),
    }


@router.post("/logout")
def logout(response: Response) -> dict:
    _clear_session_cookies(response)
    return {"detail": "Logged out."}


@router.get("/me")
def read_me(
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    return {
        "user": user_to_dict(ctx.user, ctx.roles),
        "roles": ctx.roles,
        "selected_role": ctx.selected_role,
        "redirect": dashboard_path(ctx.selected_role),
        "profiles": profile_summaries(ctx.user),
        "unread_notifications": unread_count(db, ctx.user_id),
    }


@router.post("/switch-role")
def switch_role(
    payload: SwitchRoleIn,
    response: Response,
    ctx: CurrentContext = Depends(get_current_context),
) -> dict:
    # ctx.roles comes from the database, not from the token
    if payload.role not in ctx.roles:
        logger.warning("switch_role_denied user_id=%s role=%s", ctx.user_id, payload.role)
        raise forbidden(f"You do not have the {payload.role} role")

    access = _issue_session(response, ctx.user, ctx.roles, payload.role)
    logger.info("switch_role user_id=%s from=%s to=%s", ctx.user_id, ctx.selected_role, payload.role)
    return {
        "access_token": access,
        "token_type": "bearer",
        "selected_role": payload.role,
        "redirect": dashboard_path(payload.role),
    }


@router.post("/change-password")
def change_password(
    payload: ChangePasswordIn,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    user = ctx.user
    if not verify_password(payload.current_password, user.hashed_password):
        raise bad_request("Current password is incorrect")

    problem = check_password(payload.new_password)
    if problem:
        raise bad_request(problem, ErrorCode.WEAK_PASSWORD)

    user.hashed_password = hash_password(payload.new_password)
    db.add(user)
    db.commit()

    logger.info("password_changed user_id=%s", user.id)
    return {"detail": "Password updated."}


@router.get("/route-access")
def route_access(
    path: str = Query(..., min_length=1),
    ctx: Optional[CurrentContext] = Depends(get_optional_context),
) -> dict:
    roles = ctx.roles if ctx else []
    selected = ctx.selected_role if ctx else None
    allowed, redirect = has_route_access(roles, selected, path)
    return {"path": path, "allowed": allowed, "redirect": redirect}

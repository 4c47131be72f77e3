# backend/crossborder/api/deps.py
"""
Shared API dependencies.

Every authenticated endpoint works from a CurrentContext: the user plus the
roles they hold *right now* in the database and the role the session is
acting as. Roles are re-read per request so a revoked role stops working
immediately, even with an older token.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import Cookie, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from crossborder.core.config import settings
from crossborder.core.errors import ErrorCode, forbidden, not_found
from crossborder.core.request_context import bind_actor
from crossborder.core.security import decode_jwt, get_current_user, get_token_payload, oauth2_scheme
from crossborder.db.session import get_db
from crossborder.models import ClientProfile, DriverProfile, Role, User
from crossborder.services.roles import select_role


class CurrentContext(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: User
    roles: List[str]
    selected_role: Optional[str] = None

    @property
    def user_id(self) -> int:
        return self.user.id

    def has_any(self, allowed: set[str]) -> bool:
        return bool(set(self.roles) & set(allowed))


def ensure_user_active_or_403(user: User) -> None:
    if not bool(user.is_active):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": ErrorCode.USER_DISABLED.value, "message": "User access has been disabled."},
        )


def get_current_context(
    payload: dict = Depends(get_token_payload),
    user: User = Depends(get_current_user),
) -> CurrentContext:
    ensure_user_active_or_403(user)

    roles = user.active_roles
    selected = select_role(roles, payload.get("selected_role"))
    bind_actor(user.id, selected)
    return CurrentContext(user=user, roles=roles, selected_role=selected)


def get_optional_context(
    bearer: Optional[str] = Depends(oauth2_scheme),
    session_cookie: Optional[str] = Cookie(default=None, alias=settings.session_cookie_name),
    db: Session = Depends(get_db),
) -> Optional[CurrentContext]:
    """
    Like get_current_context, but anonymous (or broken) sessions yield None
    instead of 401. Used by public pages that adapt to a signed-in reader.
    """
    token = bearer or session_cookie
    if not token:
        return None
    try:
        payload = decode_jwt(token)
    except HTTPException:
        return None
    if payload.get("type", "access") != "access" or not payload.get("sub"):
        return None

    user = db.query(User).filter(User.email == str(payload["sub"]).strip().lower()).first()
    if user is None or not bool(user.is_active):
        return None

    roles = user.active_roles
    selected = select_role(roles, payload.get("selected_role"))
    bind_actor(user.id, selected)
    return CurrentContext(user=user, roles=roles, selected_role=selected)


def require_role(ctx: CurrentContext, allowed: set[str]) -> None:
    """
    Lightweight role check; call at the top of restricted endpoints:

        require_role(ctx, {Role.ADMIN.value})

    Raises HTTP 403 unless the user currently holds one of `allowed`.
    """
    if not ctx.has_any(allowed):
        raise forbidden()


def require_admin(ctx: CurrentContext = Depends(get_current_context)) -> CurrentContext:
    require_role(ctx, {Role.ADMIN.value})
    return ctx


def require_driver_profile(
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> DriverProfile:
    require_role(ctx, {Role.DRIVER.value})
    profile = db.query(DriverProfile).filter(DriverProfile.user_id == ctx.user_id).first()
    if profile is None:
        raise not_found("Driver profile not found")
    return profile


def require_client_profile(
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> ClientProfile:
    require_role(ctx, {Role.CLIENT.value})
    profile = db.query(ClientProfile).filter(ClientProfile.user_id == ctx.user_id).first()
    if profile is None:
        raise not_found("Client profile not found")
    return profile


def paginate(query, page: int, limit: int) -> tuple[list, dict]:
    """Apply page/limit to a SQLAlchemy query; returns (items, pagination)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pages = (total + limit - 1) // limit if limit else 0
    return items, {"page": page, "limit": limit, "total": total, "pages": pages}

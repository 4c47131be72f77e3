# backend/crossborder/services/accounts.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from crossborder.models import (
    BlogEditorProfile,
    ClientProfile,
    DriverProfile,
    Role,
    User,
    UserRole,
)
from crossborder.services.formatting import as_aware_utc


def user_to_dict(user: User, roles: Optional[List[str]] = None) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "avatar": user.avatar,
        "is_verified": bool(user.is_verified),
        "is_active": bool(user.is_active),
        "roles": roles if roles is not None else user.active_roles,
        "created_at": as_aware_utc(user.created_at).isoformat() if user.created_at else None,
    }


def profile_summaries(user: User) -> dict:
    client = user.client_profile
    driver = user.driver_profile
    editor = user.editor_profile
    return {
        "client": (
            {
                "id": client.id,
                "membership_tier": client.membership_tier,
                "loyalty_points": client.loyalty_points,
            }
            if client
            else None
        ),
        "driver": (
            {
                "id": driver.id,
                "is_approved": bool(driver.is_approved),
                "is_available": bool(driver.is_available),
                "rating": driver.rating,
                "total_trips": driver.total_trips,
            }
            if driver
            else None
        ),
        "editor": (
            {"id": editor.id, "is_approved": bool(editor.is_approved)}
            if editor
            else None
        ),
    }


def ensure_profile(
    user: User,
    role: str,
    *,
    license_number: Optional[str] = None,
    license_expiry: Optional[datetime] = None,
    languages: Optional[List[str]] = None,
) -> None:
    """Create the profile row that goes with `role` if the user lacks one."""
    if role == Role.CLIENT.value and user.client_profile is None:
        user.client_profile = ClientProfile()
    elif role == Role.DRIVER.value and user.driver_profile is None:
        user.driver_profile = DriverProfile(
            license_number=license_number,
            license_expiry=as_aware_utc(license_expiry),
            languages=list(languages or []),
            is_approved=False,
        )
    elif role == Role.BLOG_EDITOR.value and user.editor_profile is None:
        user.editor_profile = BlogEditorProfile(is_approved=False, permissions=[])


def grant_role(user: User, role: str, assigned_by: Optional[int] = None) -> UserRole:
    """Add or re-activate a role row. The caller owns the commit."""
    for existing in user.roles:
        if existing.role == role:
            existing.is_active = True
            existing.assigned_by = assigned_by
            return existing

    row = UserRole(role=role, is_active=True, assigned_by=assigned_by)
    user.roles.append(row)
    return row


def revoke_role(user: User, role: str) -> bool:
    for existing in user.roles:
        if existing.role == role and existing.is_active:
            existing.is_active = False
            return True
    return False


def active_admin_count(db: Session) -> int:
    return (
        db.query(UserRole)
        .join(User, User.id == UserRole.user_id)
        .filter(
            UserRole.role == Role.ADMIN.value,
            UserRole.is_active.is_(True),
            User.is_active.is_(True),
        )
        .count()
    )

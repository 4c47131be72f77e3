# backend/crossborder/services/admin_profile.py
"""
The signed-in admin's own profile and a feed of what they changed recently.

Name, phone and avatar live on the user row. The console-only fields
(bio, department, position) are kept in a per-admin SystemSetting row so
no extra table is needed. The activity feed is read back from role rows
and settings sections stamped with the admin's id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from crossborder.models import SystemSetting, User, UserRole
from crossborder.services.accounts import user_to_dict
from crossborder.services.formatting import as_aware_utc
from crossborder.services.settings_store import SECTIONS

ADMIN_PERMISSIONS = (
    "USER_MANAGEMENT",
    "ANALYTICS_VIEW",
    "SYSTEM_SETTINGS",
    "CONTENT_MANAGEMENT",
    "FINANCIAL_REPORTS",
    "SUPPORT_MANAGEMENT",
)

EXTRA_FIELDS = ("bio", "department", "position")


def _extras_key(user_id: int) -> str:
    return f"admin_profile:{user_id}"


def _extras_row(db: Session, user_id: int) -> Optional[SystemSetting]:
    return db.query(SystemSetting).filter(SystemSetting.key == _extras_key(user_id)).first()


def profile_to_dict(db: Session, user: User, roles: Optional[List[str]] = None) -> dict:
    row = _extras_row(db, user.id)
    extras = row.value if row is not None else {}
    data = user_to_dict(user, roles)
    data.update({key: extras.get(key) for key in EXTRA_FIELDS})
    data["permissions"] = list(ADMIN_PERMISSIONS)
    data["updated_at"] = as_aware_utc(user.updated_at).isoformat() if user.updated_at else None
    return data


def save_extras(db: Session, user: User, changes: Dict[str, Any]) -> None:
    """Merge the console-only fields present in `changes`. The caller commits."""
    updates = {key: changes[key] for key in EXTRA_FIELDS if key in changes}
    if not updates:
        return

    row = _extras_row(db, user.id)
    if row is None:
        row = SystemSetting(key=_extras_key(user.id), value={}, description="Admin profile")
        db.add(row)
    row.value = {**(row.value or {}), **updates}
    row.updated_by = user.id


def _stamp(dt: Optional[datetime]) -> Optional[str]:
    return as_aware_utc(dt).isoformat() if dt else None


def recent_activity(db: Session, admin: User, limit: int = 20) -> List[dict]:
    entries: List[dict] = []

    grants = (
        db.query(UserRole, User)
        .join(User, User.id == UserRole.user_id)
        .filter(UserRole.assigned_by == admin.id, UserRole.user_id != admin.id)
        .order_by(UserRole.assigned_at.desc())
        .limit(limit)
        .all()
    )
    for role_row, target in grants:
        entries.append(
            {
                "action": "ROLE_ASSIGNED",
                "target": f"user:{target.id}",
                "description": f"Assigned {role_row.role} to {target.email}",
                "timestamp": _stamp(role_row.assigned_at),
            }
        )

    sections = (
        db.query(SystemSetting)
        .filter(SystemSetting.updated_by == admin.id, SystemSetting.key.in_(SECTIONS))
        .order_by(SystemSetting.updated_at.desc())
        .limit(limit)
        .all()
    )
    for row in sections:
        entries.append(
            {
                "action": "SETTINGS_CHANGED",
                "target": f"system:{row.key}",
                "description": f"Updated {row.key} settings",
                "timestamp": _stamp(row.updated_at),
            }
        )

    entries.sort(key=lambda e: e["timestamp"] or "", reverse=True)
    return entries[:limit]

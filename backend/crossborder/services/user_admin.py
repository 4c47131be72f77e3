# backend/crossborder/services/user_admin.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from crossborder.models import (
    BlogEditorProfile,
    BlogPost,
    ClientProfile,
    DocumentStatus,
    DriverProfile,
    NotificationType,
    PostStatus,
    Trip,
    TripStatus,
    User,
    UserRole,
    VerificationDocument,
)
from crossborder.services.formatting import as_aware_utc, utcnow
from crossborder.services.notifications import notify_many
from crossborder.services.roles import primary_role

logger = logging.getLogger("crossborder.security")

BULK_ACTIONS = (
    "activate",
    "deactivate",
    "verify",
    "unverify",
    "upgrade_membership",
    "approve_drivers",
    "reject_drivers",
    "approve_editors",
    "send_notification",
    "export",
    "delete",
    "hard_delete",
)

# Actions an admin may not aim at their own account
SELF_PROTECTED = {"deactivate", "delete", "hard_delete"}

RANGES = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


class BulkActionError(ValueError):
    pass


def _update_users(db: Session, user_ids: List[int], values: Dict[str, Any]) -> int:
    values = dict(values, updated_at=utcnow())
    return (
        db.query(User)
        .filter(User.id.in_(user_ids))
        .update(values, synchronize_session=False)
    )


def _update_profiles(db: Session, model, user_ids: List[int], values: Dict[str, Any]) -> int:
    values = dict(values, updated_at=utcnow())
    return (
        db.query(model)
        .filter(model.user_id.in_(user_ids))
        .update(values, synchronize_session=False)
    )


def export_rows(db: Session, user_ids: List[int]) -> List[dict]:
    users = db.query(User).filter(User.id.in_(user_ids)).order_by(User.id).all()
    rows = []
    for u in users:
        client = u.client_profile
        driver = u.driver_profile
        editor = u.editor_profile
        rows.append(
            {
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "phone": u.phone or "",
                "role": primary_role(u.active_roles) or "",
                "roles": u.active_roles,
                "is_active": bool(u.is_active),
                "is_verified": bool(u.is_verified),
                "membership_tier": client.membership_tier if client else "",
                "loyalty_points": client.loyalty_points if client else 0,
                "driver_license": driver.license_number if driver else "",
                "driver_rating": driver.rating if driver else 0,
                "driver_approved": bool(driver.is_approved) if driver else False,
                "editor_approved": bool(editor.is_approved) if editor else False,
                "created_at": as_aware_utc(u.created_at).isoformat() if u.created_at else None,
                "updated_at": as_aware_utc(u.updated_at).isoformat() if u.updated_at else None,
            }
        )
    return rows


def bulk_action(
    db: Session,
    admin: User,
    action: Optional[str],
    user_ids: Optional[List[int]],
    data: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Apply one admin action to the listed users only. Commits unless the
    action is a read-only export.
    """
    if not action or not user_ids:
        raise BulkActionError("Action and user IDs are required")
    if action not in BULK_ACTIONS:
        raise BulkActionError(f"Unknown action: {action}")
    if action in SELF_PROTECTED and admin.id in user_ids:
        raise BulkActionError(f"You cannot {action.replace('_', ' ')} your own account")

    data = data or {}
    ids = list(dict.fromkeys(int(i) for i in user_ids))

    if action == "export":
        rows = export_rows(db, ids)
        return {"message": "Export data prepared", "data": rows, "count": len(rows)}

    if action == "activate":
        count = _update_users(db, ids, {"is_active": True})
    elif action in ("deactivate", "delete"):
        # delete is a soft delete
        count = _update_users(db, ids, {"is_active": False})
    elif action == "verify":
        count = _update_users(db, ids, {"is_verified": True})
    elif action == "unverify":
        count = _update_users(db, ids, {"is_verified": False})
    elif action == "upgrade_membership":
        tier = data.get("membership_tier")
        if not tier:
            raise BulkActionError("Membership tier is required for upgrade action")
        count = _update_profiles(db, ClientProfile, ids, {"membership_tier": str(tier)})
    elif action == "approve_drivers":
        count = _update_profiles(db, DriverProfile, ids, {"is_approved": True})
    elif action == "reject_drivers":
        count = _update_profiles(db, DriverProfile, ids, {"is_approved": False})
    elif action == "approve_editors":
        count = _update_profiles(db, BlogEditorProfile, ids, {"is_approved": True})
    elif action == "send_notification":
        if not data.get("title") or not data.get("message"):
            raise BulkActionError("Title and message are required for notification")
        existing = [r[0] for r in db.query(User.id).filter(User.id.in_(ids)).all()]
        count = notify_many(
            db,
            existing,
            data.get("type") or NotificationType.SYSTEM_UPDATE,
            data["title"],
            data["message"],
            data.get("additional_data") or {},
        )
    else:  # hard_delete
        users = db.query(User).filter(User.id.in_(ids)).all()
        for u in users:
            db.delete(u)
        count = len(users)

    db.commit()

    logger.warning(
        "bulk_action action=%s affected=%s user_ids=%s by_user_id=%s",
        action,
        count,
        ids,
        admin.id,
    )
    return {
        "message": f"Successfully processed {action} for {count} users",
        "action": action,
        "affected_count": count,
        "user_ids": ids,
    }


def range_start(range_key: str, now: Optional[datetime] = None) -> datetime:
    now = as_aware_utc(now) or utcnow()
    return now - RANGES.get(range_key, RANGES["30d"])


def analytics(db: Session, range_key: str = "30d", now: Optional[datetime] = None) -> dict:
    if range_key not in RANGES:
        range_key = "30d"
    now = as_aware_utc(now) or utcnow()
    start = range_start(range_key, now)

    revenue = (
        db.query(func.coalesce(func.sum(Trip.total_price), 0))
        .filter(Trip.status == TripStatus.COMPLETED.value, Trip.completed_at >= start)
        .scalar()
    )

    role_rows = (
        db.query(UserRole.role, func.count(UserRole.user_id))
        .filter(UserRole.is_active.is_(True))
        .group_by(UserRole.role)
        .all()
    )
    status_rows = db.query(Trip.status, func.count(Trip.id)).group_by(Trip.status).all()

    top_drivers = (
        db.query(DriverProfile)
        .filter(DriverProfile.is_approved.is_(True), DriverProfile.total_trips > 0)
        .order_by(DriverProfile.rating.desc(), DriverProfile.total_trips.desc())
        .limit(10)
        .all()
    )

    return {
        "range": range_key,
        "start_date": start.isoformat(),
        "users": {
            "total": db.query(User).count(),
            "active": db.query(User).filter(User.is_active.is_(True)).count(),
            "new": db.query(User).filter(User.created_at >= start).count(),
        },
        "trips": {
            "total": db.query(Trip).count(),
            "completed": db.query(Trip).filter(Trip.status == TripStatus.COMPLETED.value).count(),
        },
        "revenue": float(revenue or 0),
        "active_drivers": (
            db.query(DriverProfile)
            .filter(DriverProfile.is_approved.is_(True), DriverProfile.is_available.is_(True))
            .count()
        ),
        "pending_verifications": (
            db.query(VerificationDocument)
            .filter(VerificationDocument.status == DocumentStatus.PENDING.value)
            .count()
        ),
        "published_posts": db.query(BlogPost).filter(BlogPost.status == PostStatus.PUBLISHED.value).count(),
        "role_distribution": {role: count for role, count in role_rows},
        "trip_status_distribution": {status: count for status, count in status_rows},
        "top_drivers": [
            {
                "driver_id": d.id,
                "name": d.user.name if d.user else None,
                "rating": d.rating,
                "total_trips": d.total_trips,
            }
            for d in top_drivers
        ],
    }

# backend/crossborder/api/v1/admin.py
"""
Admin console: the admin's own profile, system settings, user management,
analytics and driver document review. Every route here depends on
require_admin.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, paginate, require_admin
from crossborder.core.errors import ErrorCode, bad_request, not_found
from crossborder.db.session import get_db
from crossborder.models import (
    DocumentStatus,
    NotificationType,
    Role,
    User,
    UserRole,
    VerificationDocument,
)
from crossborder.services.accounts import active_admin_count, ensure_profile, grant_role, revoke_role, user_to_dict
from crossborder.services.admin_profile import profile_to_dict, recent_activity, save_extras
from crossborder.services.formatting import utcnow
from crossborder.services.notifications import notify
from crossborder.services.settings_store import SettingsError, load_settings, replace_settings, update_section
from crossborder.services.user_admin import BulkActionError, analytics, bulk_action
from crossborder.services.validation import check_name, check_phone
from crossborder.services.verification import document_to_dict

logger = logging.getLogger("crossborder.security")

router = APIRouter(prefix="/admin", tags=["admin"])


class BulkIn(BaseModel):
    action: Optional[str] = None
    user_ids: Optional[List[int]] = None
    data: Optional[Dict[str, Any]] = None


class RoleAssignIn(BaseModel):
    role: Role
    license_number: Optional[str] = Field(default=None, max_length=64)
    license_expiry: Optional[datetime] = None


class AdminProfileIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    avatar: Optional[str] = Field(default=None, max_length=512)
    bio: Optional[str] = Field(default=None, max_length=2000)
    department: Optional[str] = Field(default=None, max_length=100)
    position: Optional[str] = Field(default=None, max_length=100)


class DocumentReviewIn(BaseModel):
    status: DocumentStatus
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


# === Settings ===

@router.get("/settings")
def get_settings_view(
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    merged, last_updated, updated_by = load_settings(db)
    return {
        "settings": merged,
        "last_updated": last_updated.isoformat() if last_updated else None,
        "updated_by": updated_by,
    }


@router.put("/settings")
def put_settings(
    body: Optional[Dict[str, Any]] = Body(default=None),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    try:
        merged = replace_settings(db, (body or {}).get("settings"), ctx.user)
    except SettingsError as exc:
        raise bad_request(str(exc), ErrorCode.VALIDATION_ERROR)
    return {"message": "Settings updated successfully", "settings": merged}


@router.patch("/settings")
def patch_settings(
    body: Optional[Dict[str, Any]] = Body(default=None),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    body = body or {}
    section = body.get("section")
    try:
        data = update_section(db, section, body.get("data"), ctx.user)
    except SettingsError as exc:
        raise bad_request(str(exc), ErrorCode.VALIDATION_ERROR)
    return {"section": section, "data": data, "message": f"{section} settings updated successfully"}


# === Profile ===

@router.get("/profile")
def get_admin_profile(
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return {"profile": profile_to_dict(db, ctx.user, ctx.roles)}


@router.put("/profile")
def update_admin_profile(
    payload: AdminProfileIn,
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes:
        if not (changes["name"] or "").strip():
            raise bad_request("Name is required", ErrorCode.VALIDATION_ERROR)
        problem = check_name(changes["name"])
        if problem:
            raise bad_request(problem, ErrorCode.VALIDATION_ERROR)
        ctx.user.name = changes["name"].strip()
    if "phone" in changes:
        problem = check_phone(changes["phone"])
        if problem:
            raise bad_request(problem, ErrorCode.VALIDATION_ERROR)
        ctx.user.phone = (changes["phone"] or "").strip() or None
    if "avatar" in changes:
        ctx.user.avatar = changes["avatar"]
    save_extras(db, ctx.user, changes)

    db.commit()
    db.refresh(ctx.user)
    return {"message": "Profile updated successfully", "profile": profile_to_dict(db, ctx.user, ctx.roles)}


@router.get("/profile/activity")
def get_admin_activity(
    limit: int = Query(default=20, ge=1, le=100),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return {"activity": recent_activity(db, ctx.user, limit), "admin_id": ctx.user_id}


# === Users ===

@router.get("/users")
def list_users(
    role: Optional[Role] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(User)
    if role is not None:
        query = query.filter(User.roles.any((UserRole.role == role.value) & UserRole.is_active.is_(True)))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))

    users, pagination = paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return {"users": [user_to_dict(u) for u in users], "pagination": pagination}


@router.post("/users/bulk")
def bulk_users(
    payload: BulkIn,
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    try:
        return bulk_action(db, ctx.user, payload.action, payload.user_ids, payload.data)
    except BulkActionError as exc:
        raise bad_request(str(exc))


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise not_found("User not found")
    return user


@router.post("/users/{user_id}/roles")
def assign_role(
    user_id: int,
    payload: RoleAssignIn,
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    user = _get_user(db, user_id)
    role = payload.role.value

    if role == Role.DRIVER.value and user.driver_profile is None:
        if not payload.license_number or payload.license_expiry is None:
            raise bad_request(
                "License number and expiry are required to assign the driver role",
                ErrorCode.DRIVER_DATA_REQUIRED,
            )

    ensure_profile(
        user,
        role,
        license_number=payload.license_number,
        license_expiry=payload.license_expiry,
    )
    grant_role(user, role, assigned_by=ctx.user_id)
    db.commit()
    db.refresh(user)

    logger.info("role_assigned user_id=%s role=%s by_user_id=%s", user.id, role, ctx.user_id)
    return {"message": f"Role {role} assigned", "user": user_to_dict(user)}


@router.delete("/users/{user_id}/roles/{role}")
def remove_role(
    user_id: int,
    role: Role,
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    user = _get_user(db, user_id)

    if role is Role.ADMIN and role.value in user.active_roles and active_admin_count(db) <= 1:
        raise bad_request("Cannot remove the last admin role in the system")

    if not revoke_role(user, role.value):
        raise not_found(f"User does not hold the {role.value} role")

    db.commit()
    db.refresh(user)

    logger.warning("role_revoked user_id=%s role=%s by_user_id=%s", user.id, role.value, ctx.user_id)
    return {"message": f"Role {role.value} revoked", "user": user_to_dict(user)}


# === Analytics ===

@router.get("/analytics")
def get_analytics(
    range_key: str = Query(default="30d", alias="range"),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return analytics(db, range_key)


# === Driver verification review ===

@router.get("/verification")
def pending_documents(
    status_filter: DocumentStatus = Query(default=DocumentStatus.PENDING, alias="status"),
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    docs = (
        db.query(VerificationDocument)
        .filter(VerificationDocument.status == status_filter.value)
        .order_by(VerificationDocument.uploaded_at.asc(), VerificationDocument.id.asc())
        .all()
    )
    return {"documents": [{**document_to_dict(d), "driver_id": d.driver_id} for d in docs]}


@router.patch("/verification/{doc_id}")
def review_document(
    doc_id: int,
    payload: DocumentReviewIn,
    ctx: CurrentContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    if payload.status not in (DocumentStatus.APPROVED, DocumentStatus.REJECTED):
        raise bad_request("Status must be APPROVED or REJECTED")

    doc = db.get(VerificationDocument, doc_id)
    if doc is None:
        raise not_found("Document not found")

    doc.status = payload.status.value
    doc.admin_notes = payload.admin_notes
    doc.reviewed_at = utcnow()

    approved = payload.status is DocumentStatus.APPROVED
    label = doc.document_type.replace("_", " ").lower()
    message = f"Your {label} document has been {'approved' if approved else 'rejected'}"
    if payload.admin_notes and not approved:
        message = f"{message}: {payload.admin_notes}"

    notify(
        db,
        doc.driver.user_id,
        NotificationType.DOCUMENT_APPROVED if approved else NotificationType.DOCUMENT_REJECTED,
        "Document Approved" if approved else "Document Rejected",
        message,
        {"document_id": doc.id, "document_type": doc.document_type},
    )

    db.commit()
    db.refresh(doc)

    logger.info(
        "verification_document_reviewed doc_id=%s status=%s by_user_id=%s",
        doc.id,
        doc.status,
        ctx.user_id,
    )
    return {"message": f"Document {doc.status.lower()}", "document": document_to_dict(doc)}

# backend/crossborder/api/v1/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, get_current_context
from crossborder.core.errors import not_found
from crossborder.db.session import get_db
from crossborder.models import Notification
from crossborder.services.formatting import as_aware_utc, time_ago
from crossborder.services.notifications import unread_count

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_dict(note: Notification) -> dict:
    created = as_aware_utc(note.created_at)
    return {
        "id": note.id,
        "type": note.type,
        "title": note.title,
        "message": note.message,
        "data": note.data or {},
        "is_read": bool(note.is_read),
        "created_at": created.isoformat() if created else None,
        "time_ago": time_ago(created) if created else None,
    }


@router.get("")
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    query = db.query(Notification).filter(Notification.user_id == ctx.user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))

    notes = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return {
        "notifications": [_to_dict(n) for n in notes],
        "unread_count": unread_count(db, ctx.user_id),
    }


@router.post("/read-all")
def mark_all_read(
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == ctx.user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"message": "All notifications marked as read", "updated": updated}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    note = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == ctx.user_id)
        .first()
    )
    if note is None:
        raise not_found("Notification not found")

    note.is_read = True
    db.commit()
    db.refresh(note)
    return {"notification": _to_dict(note)}

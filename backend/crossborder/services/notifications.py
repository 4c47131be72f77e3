# backend/crossborder/services/notifications.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from crossborder.models import Notification, NotificationType, Role, UserRole

logger = logging.getLogger("crossborder")


def notify(
    db: Session,
    user_id: int,
    type: NotificationType | str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    """
    Queue an in-app notification for one user. The caller owns the commit.
    """
    note = Notification(
        user_id=user_id,
        type=str(getattr(type, "value", type)),
        title=title,
        message=message,
        data=data or {},
        is_read=False,
    )
    db.add(note)
    logger.info("notification type=%s user_id=%s", note.type, user_id)
    return note


def notify_many(
    db: Session,
    user_ids: Iterable[int],
    type: NotificationType | str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> int:
    count = 0
    for uid in user_ids:
        notify(db, uid, type, title, message, data)
        count += 1
    return count


def admin_user_ids(db: Session) -> list[int]:
    rows = (
        db.query(UserRole.user_id)
        .filter(UserRole.role == Role.ADMIN.value, UserRole.is_active.is_(True))
        .all()
    )
    return [r[0] for r in rows]


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )

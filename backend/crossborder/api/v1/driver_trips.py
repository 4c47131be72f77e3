# backend/crossborder/api/v1/driver_trips.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from crossborder.api.deps import require_driver_profile
from crossborder.core.errors import ErrorCode, bad_request, not_found
from crossborder.db.session import get_db
from crossborder.models import (
    DriverProfile,
    NotificationType,
    Payment,
    PaymentStatus,
    Trip,
    TripStatus,
)
from crossborder.services.earnings import (
    earnings_trip_row,
    earnings_window,
    group_by_period,
    summarize,
    trip_type_breakdown,
)
from crossborder.services.formatting import utcnow
from crossborder.services.notifications import notify
from crossborder.services.trips import TransitionError, TripAction, group_requests, plan_transition

logger = logging.getLogger("crossborder")

router = APIRouter(prefix="/drivers", tags=["drivers"])

_NOTIFICATIONS = {
    TripAction.ACCEPT: (NotificationType.TRIP_ACCEPTED, "Trip Accepted", "Your trip has been accepted by {driver}"),
    TripAction.START: (NotificationType.TRIP_STARTED, "Trip Started", "Your driver is on the way"),
    TripAction.COMPLETE: (
        NotificationType.TRIP_COMPLETED,
        "Trip Completed",
        "Your trip has been completed successfully",
    ),
}

_PAST_TENSE = {TripAction.ACCEPT: "accepted", TripAction.START: "started", TripAction.COMPLETE: "completed"}


class TripActionIn(BaseModel):
    action: TripAction
    trip_id: int
    notes: Optional[str] = Field(default=None, max_length=2000)


@router.get("/requests")
def list_requests(
    status: Literal["all", "incoming", "active", "completed"] = "all",
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    incoming = or_(
        and_(Trip.status == TripStatus.PENDING.value, Trip.driver_id.is_(None)),
        and_(Trip.status == TripStatus.CONFIRMED.value, Trip.driver_id == driver.id),
    )
    active = and_(
        Trip.driver_id == driver.id,
        Trip.status.in_([TripStatus.ACCEPTED.value, TripStatus.IN_PROGRESS.value]),
    )
    completed = and_(Trip.driver_id == driver.id, Trip.status == TripStatus.COMPLETED.value)

    clause = {
        "incoming": incoming,
        "active": active,
        "completed": completed,
    }.get(status, or_(incoming, active, completed))

    trips = db.query(Trip).filter(clause).all()
    return group_requests(trips, driver.id)


@router.post("/requests")
def act_on_request(
    payload: TripActionIn,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    trip = db.query(Trip).filter(Trip.id == payload.trip_id).first()
    if trip is None:
        raise not_found("Trip not found")

    try:
        transition = plan_transition(payload.action, trip.status, trip.driver_id, driver.id)
    except TransitionError as exc:
        raise bad_request(str(exc), ErrorCode.INVALID_TRANSITION)

    if not transition.changes_trip:
        logger.info("trip_declined trip_id=%s driver_id=%s", trip.id, driver.id)
        return {"message": "Trip declined successfully", "trip": {"id": trip.id, "status": trip.status}}

    now = utcnow()
    trip.status = transition.new_status
    if payload.action is TripAction.ACCEPT:
        trip.driver_id = driver.id
        trip.accepted_at = now
    elif payload.action is TripAction.START:
        trip.started_at = now
    elif payload.action is TripAction.COMPLETE:
        trip.completed_at = now
        trip.driver_notes = payload.notes
        driver.total_trips = (driver.total_trips or 0) + 1

    note_type, title, message = _NOTIFICATIONS[payload.action]
    data = {"trip_id": trip.id, "driver_id": driver.id}
    notify(db, trip.client_id, note_type, title, message.format(driver=driver.user.name), data)
    if payload.action is TripAction.COMPLETE:
        notify(
            db,
            trip.client_id,
            NotificationType.REVIEW_REQUEST,
            "How was your trip?",
            "Please take a moment to rate your driver",
            data,
        )

    db.commit()
    db.refresh(trip)

    logger.info("trip_%s trip_id=%s driver_id=%s", payload.action.value, trip.id, driver.id)
    return {
        "message": f"Trip {_PAST_TENSE[payload.action]} successfully",
        "trip": {"id": trip.id, "status": trip.status, "updated_at": utcnow().isoformat()},
    }


@router.get("/earnings")
def earnings(
    period: Literal["daily", "weekly", "monthly"] = "daily",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    start, end = earnings_window(period, start=start_date, end=end_date)

    trips = (
        db.query(Trip)
        .filter(
            Trip.driver_id == driver.id,
            Trip.status == TripStatus.COMPLETED.value,
            Trip.completed_at >= start,
            Trip.completed_at <= end,
        )
        .order_by(Trip.completed_at.desc())
        .all()
    )

    pending = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .join(Trip, Trip.id == Payment.trip_id)
        .filter(Trip.driver_id == driver.id, Payment.status == PaymentStatus.PENDING.value)
        .scalar()
    )

    return {
        "period": period,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "summary": summarize(trips, float(pending or 0)),
        "earnings": group_by_period(trips, period),
        "trip_types": trip_type_breakdown(trips),
        "trips": [earnings_trip_row(t) for t in trips],
    }

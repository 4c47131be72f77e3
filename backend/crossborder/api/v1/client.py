# backend/crossborder/api/v1/client.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, get_current_context, paginate, require_client_profile
from crossborder.core.errors import ErrorCode, bad_request, conflict, not_found
from crossborder.db.session import get_db
from crossborder.models import (
    ClientProfile,
    DriverProfile,
    NotificationType,
    PaymentMethod,
    Review,
    SavedMethodType,
    Trip,
    TripStatus,
    VehicleType,
)
from crossborder.services.accounts import user_to_dict
from crossborder.services.formatting import as_aware_utc
from crossborder.services.notifications import notify
from crossborder.services.trips import trip_to_dict
from crossborder.services.validation import check_name, check_phone

logger = logging.getLogger("crossborder")

router = APIRouter(prefix="/client", tags=["client"])

CANCELLABLE = (TripStatus.PENDING.value, TripStatus.CONFIRMED.value, TripStatus.ACCEPTED.value)
CARD_TYPES = (SavedMethodType.CREDIT_CARD.value, SavedMethodType.DEBIT_CARD.value)

_SORT_COLUMNS = {
    "scheduled_date": Trip.scheduled_date,
    "created_at": Trip.created_at,
    "total_price": Trip.total_price,
}


class CancelIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class ReviewIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=255)
    comment: Optional[str] = Field(default=None, max_length=5000)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = Field(default=None, max_length=512)
    preferred_vehicle: Optional[VehicleType] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    special_requests: Optional[str] = Field(default=None, max_length=2000)


class PaymentMethodIn(BaseModel):
    type: SavedMethodType
    last4_digits: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    card_brand: Optional[str] = Field(default=None, max_length=32)
    expiry_month: Optional[int] = Field(default=None, ge=1, le=12)
    expiry_year: Optional[int] = Field(default=None, ge=2000, le=2100)
    cardholder_name: Optional[str] = Field(default=None, max_length=255)
    wallet_type: Optional[str] = Field(default=None, max_length=32)
    billing_address: Optional[Dict[str, Any]] = None
    is_default: bool = False


class PaymentMethodUpdate(BaseModel):
    card_brand: Optional[str] = Field(default=None, max_length=32)
    expiry_month: Optional[int] = Field(default=None, ge=1, le=12)
    expiry_year: Optional[int] = Field(default=None, ge=2000, le=2100)
    cardholder_name: Optional[str] = Field(default=None, max_length=255)
    billing_address: Optional[Dict[str, Any]] = None
    is_default: Optional[bool] = None


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _trip_analytics(db: Session, base_query, user_id: int) -> dict:
    total = base_query.count()
    completed = base_query.filter(Trip.status == TripStatus.COMPLETED.value).count()
    cancelled = base_query.filter(Trip.status == TripStatus.CANCELLED.value).count()
    spent = (
        base_query.filter(Trip.status == TripStatus.COMPLETED.value)
        .with_entities(func.coalesce(func.sum(Trip.total_price), 0))
        .scalar()
    )
    avg_rating = db.query(func.avg(Review.rating)).filter(Review.reviewer_id == user_id).scalar()

    return {
        "total_trips": total,
        "completed_trips": completed,
        "cancelled_trips": cancelled,
        "total_spent": float(spent or 0),
        "avg_rating": round(float(avg_rating), 1) if avg_rating is not None else 0.0,
        "completion_rate": _percent(completed, total),
        "cancellation_rate": _percent(cancelled, total),
    }


def _own_trip(db: Session, ctx: CurrentContext, trip_id: int) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id, Trip.client_id == ctx.user_id).first()
    if trip is None:
        raise not_found("Trip not found")
    return trip


# === Trips ===

@router.get("/trips")
def list_trips(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: Optional[TripStatus] = Query(default=None, alias="status"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_by: Literal["scheduled_date", "created_at", "total_price"] = "scheduled_date",
    sort_order: Literal["asc", "desc"] = "desc",
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    """
    Trip history for the signed-in client. Analytics cover the whole date
    window, not just the current page or status filter.
    """
    base = db.query(Trip).filter(Trip.client_id == ctx.user_id)
    if date_from is not None:
        base = base.filter(Trip.scheduled_date >= as_aware_utc(date_from))
    if date_to is not None:
        base = base.filter(Trip.scheduled_date <= as_aware_utc(date_to))

    query = base
    if status_filter is not None:
        query = query.filter(Trip.status == status_filter.value)

    column = _SORT_COLUMNS[sort_by]
    ordered = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Trip.id.desc())
    trips, pagination = paginate(ordered, page, limit)

    return {
        "trips": [trip_to_dict(t) for t in trips],
        "pagination": pagination,
        "analytics": _trip_analytics(db, base, ctx.user_id),
    }


@router.post("/trips/{trip_id}/cancel")
def cancel_trip(
    trip_id: int,
    payload: CancelIn,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    trip = _own_trip(db, ctx, trip_id)
    if trip.status not in CANCELLABLE:
        raise bad_request(f"Cannot cancel a trip that is {trip.status.lower()}", ErrorCode.INVALID_TRANSITION)

    trip.status = TripStatus.CANCELLED.value
    trip.cancellation_reason = payload.reason

    if trip.driver is not None:
        notify(
            db,
            trip.driver.user_id,
            NotificationType.BOOKING_CANCELLED,
            "Booking Cancelled",
            f"The client cancelled the trip from {trip.pickup_address} to {trip.dropoff_address}",
            {"trip_id": trip.id, "reason": payload.reason},
        )

    db.commit()
    db.refresh(trip)

    logger.info("trip_cancelled trip_id=%s client_id=%s", trip.id, ctx.user_id)
    return {"message": "Trip cancelled successfully", "trip": trip_to_dict(trip)}


@router.post("/trips/{trip_id}/review", status_code=status.HTTP_201_CREATED)
def review_trip(
    trip_id: int,
    payload: ReviewIn,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    trip = _own_trip(db, ctx, trip_id)
    if trip.status != TripStatus.COMPLETED.value:
        raise bad_request("Only completed trips can be reviewed")

    existing = db.query(Review).filter(Review.trip_id == trip.id, Review.reviewer_id == ctx.user_id).first()
    if existing is not None:
        raise conflict("You have already reviewed this trip")

    review = Review(
        trip_id=trip.id,
        reviewer_id=ctx.user_id,
        rating=payload.rating,
        title=payload.title,
        comment=payload.comment,
    )
    db.add(review)
    db.flush()

    if trip.driver_id is not None:
        avg = (
            db.query(func.avg(Review.rating))
            .join(Trip, Trip.id == Review.trip_id)
            .filter(Trip.driver_id == trip.driver_id)
            .scalar()
        )
        driver = db.get(DriverProfile, trip.driver_id)
        driver.rating = round(float(avg or 0), 2)

    db.commit()
    db.refresh(review)

    return {
        "message": "Review submitted successfully",
        "review": {
            "id": review.id,
            "trip_id": review.trip_id,
            "rating": review.rating,
            "title": review.title,
            "comment": review.comment,
        },
    }


# === Profile ===

def _profile_payload(ctx: CurrentContext, profile: ClientProfile) -> dict:
    return {
        "user": user_to_dict(ctx.user, ctx.roles),
        "profile": {
            "id": profile.id,
            "preferred_vehicle": profile.preferred_vehicle,
            "loyalty_points": profile.loyalty_points,
            "membership_tier": profile.membership_tier,
            "emergency_contact": profile.emergency_contact,
            "special_requests": profile.special_requests,
        },
    }


@router.get("/profile")
def get_profile(
    ctx: CurrentContext = Depends(get_current_context),
    profile: ClientProfile = Depends(require_client_profile),
) -> dict:
    return _profile_payload(ctx, profile)


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    ctx: CurrentContext = Depends(get_current_context),
    profile: ClientProfile = Depends(require_client_profile),
    db: Session = Depends(get_db),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes:
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

    if "preferred_vehicle" in changes:
        pv = changes["preferred_vehicle"]
        profile.preferred_vehicle = VehicleType(pv).value if pv else None
    for key in ("emergency_contact", "special_requests"):
        if key in changes:
            setattr(profile, key, changes[key])

    db.commit()
    db.refresh(profile)
    return {"message": "Profile updated successfully", **_profile_payload(ctx, profile)}


# === Payment methods ===

def _method_to_dict(method: PaymentMethod) -> dict:
    return {
        "id": method.id,
        "type": method.type,
        "last4_digits": method.last4_digits,
        "card_brand": method.card_brand,
        "expiry_month": method.expiry_month,
        "expiry_year": method.expiry_year,
        "cardholder_name": method.cardholder_name,
        "wallet_type": method.wallet_type,
        "billing_address": method.billing_address,
        "is_default": bool(method.is_default),
        "created_at": as_aware_utc(method.created_at).isoformat() if method.created_at else None,
    }


def _unset_defaults(db: Session, profile: ClientProfile, keep_id: Optional[int] = None) -> None:
    q = db.query(PaymentMethod).filter(PaymentMethod.client_id == profile.id, PaymentMethod.is_default.is_(True))
    if keep_id is not None:
        q = q.filter(PaymentMethod.id != keep_id)
    q.update({PaymentMethod.is_default: False}, synchronize_session="fetch")


def _own_method(db: Session, profile: ClientProfile, method_id: int) -> PaymentMethod:
    method = (
        db.query(PaymentMethod)
        .filter(
            PaymentMethod.id == method_id,
            PaymentMethod.client_id == profile.id,
            PaymentMethod.is_active.is_(True),
        )
        .first()
    )
    if method is None:
        raise not_found("Payment method not found")
    return method


@router.get("/payment-methods")
def list_payment_methods(
    profile: ClientProfile = Depends(require_client_profile),
    db: Session = Depends(get_db),
) -> dict:
    methods = (
        db.query(PaymentMethod)
        .filter(PaymentMethod.client_id == profile.id, PaymentMethod.is_active.is_(True))
        .order_by(PaymentMethod.is_default.desc(), PaymentMethod.created_at.desc(), PaymentMethod.id.desc())
        .all()
    )
    return {"payment_methods": [_method_to_dict(m) for m in methods]}


@router.post("/payment-methods", status_code=status.HTTP_201_CREATED)
def create_payment_method(
    payload: PaymentMethodIn,
    profile: ClientProfile = Depends(require_client_profile),
    db: Session = Depends(get_db),
) -> dict:
    if payload.type.value in CARD_TYPES:
        required = (
            payload.last4_digits,
            payload.card_brand,
            payload.expiry_month,
            payload.expiry_year,
            payload.cardholder_name,
        )
        if any(v in (None, "") for v in required):
            raise bad_request("Missing required card information")
    elif payload.type is SavedMethodType.DIGITAL_WALLET and not payload.wallet_type:
        raise bad_request("Wallet type is required for digital wallets")

    if payload.is_default:
        _unset_defaults(db, profile)

    method = PaymentMethod(client_id=profile.id, is_active=True, **payload.model_dump())
    method.type = payload.type.value
    db.add(method)
    db.commit()
    db.refresh(method)

    return {"payment_method": _method_to_dict(method)}


@router.put("/payment-methods/{method_id}")
def update_payment_method(
    method_id: int,
    payload: PaymentMethodUpdate,
    profile: ClientProfile = Depends(require_client_profile),
    db: Session = Depends(get_db),
) -> dict:
    method = _own_method(db, profile, method_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("is_default"):
        _unset_defaults(db, profile, keep_id=method.id)
    for key, value in changes.items():
        if value is None and key == "is_default":
            continue
        setattr(method, key, value)

    db.commit()
    db.refresh(method)
    return {"payment_method": _method_to_dict(method)}


@router.delete("/payment-methods/{method_id}")
def delete_payment_method(
    method_id: int,
    profile: ClientProfile = Depends(require_client_profile),
    db: Session = Depends(get_db),
) -> dict:
    method = _own_method(db, profile, method_id)
    method.is_active = False
    method.is_default = False
    db.commit()
    return {"message": "Payment method deleted successfully"}

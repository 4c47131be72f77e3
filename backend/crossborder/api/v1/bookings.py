# backend/crossborder/api/v1/bookings.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crossborder.api.deps import CurrentContext, get_current_context, paginate, require_role
from crossborder.core.errors import bad_request
from crossborder.db.session import get_db
from crossborder.models import PaymentMethodKind, Role, Trip, TripStatus, VehicleType
from crossborder.services.booking_wizard import STEPS, next_step, validate_step
from crossborder.services.bookings import create_booking
from crossborder.services.formatting import as_aware_utc, utcnow
from crossborder.services.pricing import Location, find_vehicle_class, price_estimate, wizard_quote
from crossborder.services.trips import trip_to_dict

router = APIRouter(prefix="/bookings", tags=["bookings"])


class LocationIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=512)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    region: Literal["HK", "CHINA"] = "HK"

    def to_location(self) -> Location:
        return Location(address=self.address.strip(), lat=self.lat, lng=self.lng, region=self.region)


class QuoteIn(BaseModel):
    vehicle_id: Optional[str] = None
    base_price: Optional[float] = Field(default=None, gt=0)
    distance_km: Optional[float] = Field(default=None, gt=0)


class ValidateIn(BaseModel):
    step: Literal["route", "vehicle", "datetime", "passengers", "contact", "payment", "review"]
    data: Dict[str, Any] = Field(default_factory=dict)


class EstimateIn(BaseModel):
    pickup: LocationIn
    dropoff: LocationIn
    vehicle_type: VehicleType = VehicleType.BUSINESS


class BookingCreate(BaseModel):
    pickup: LocationIn
    dropoff: LocationIn
    scheduled_date: datetime
    vehicle_type: VehicleType
    passenger_count: int = Field(default=1, ge=1, le=8)
    luggage_count: int = Field(default=0, ge=0, le=10)
    special_requests: Optional[str] = Field(default=None, max_length=1000)
    payment_method: PaymentMethodKind = PaymentMethodKind.CREDIT_CARD


@router.post("/quote")
def quote(payload: QuoteIn) -> dict:
    """Wizard quote: the vehicle class fare scaled over the standard route."""
    base = payload.base_price
    if base is None and payload.vehicle_id:
        vehicle = find_vehicle_class(payload.vehicle_id)
        if vehicle is None:
            raise bad_request("Unknown vehicle selection")
        base = vehicle.base_price
    return wizard_quote(base, payload.distance_km)


@router.post("/validate")
def validate(payload: ValidateIn) -> dict:
    errors = validate_step(payload.step, payload.data)
    valid = not errors
    return {
        "step": payload.step,
        "valid": valid,
        "errors": errors,
        "next_step": next_step(payload.step) if valid else payload.step,
        "steps": STEPS,
    }


@router.post("/estimate")
def estimate(payload: EstimateIn) -> dict:
    return price_estimate(payload.pickup.to_location(), payload.dropoff.to_location(), payload.vehicle_type.value)


@router.post("", status_code=status.HTTP_201_CREATED)
def create(
    payload: BookingCreate,
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    require_role(ctx, {Role.CLIENT.value})

    when = as_aware_utc(payload.scheduled_date)
    if when <= utcnow():
        raise bad_request("Scheduled date must be in the future")

    trip = create_booking(
        db,
        ctx.user,
        pickup=payload.pickup.to_location(),
        dropoff=payload.dropoff.to_location(),
        scheduled_date=when,
        vehicle_type=payload.vehicle_type.value,
        passenger_count=payload.passenger_count,
        luggage_count=payload.luggage_count,
        special_requests=payload.special_requests,
        payment_method=payload.payment_method.value,
    )

    message = (
        "Booking confirmed and driver assigned"
        if trip.status == TripStatus.CONFIRMED.value
        else "Booking received; waiting for a driver to accept"
    )
    return {"message": message, "booking": trip_to_dict(trip)}


@router.get("")
def list_bookings(
    status_filter: Optional[TripStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    ctx: CurrentContext = Depends(get_current_context),
    db: Session = Depends(get_db),
) -> dict:
    """
    Scope follows the roles the user holds: admins see every trip, anyone
    else their own bookings plus, when they drive, the trips assigned to them.
    """
    query = db.query(Trip)

    if not ctx.has_any({Role.ADMIN.value}):
        mine = [Trip.client_id == ctx.user_id]
        driver = ctx.user.driver_profile
        if driver is not None and ctx.has_any({Role.DRIVER.value}):
            mine.append(Trip.driver_id == driver.id)
        query = query.filter(or_(*mine))

    if status_filter is not None:
        query = query.filter(Trip.status == status_filter.value)

    trips, pagination = paginate(query.order_by(Trip.scheduled_date.desc(), Trip.id.desc()), page, limit)
    return {"bookings": [trip_to_dict(t) for t in trips], "pagination": pagination}

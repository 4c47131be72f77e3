# backend/crossborder/services/bookings.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from crossborder.models import (
    DriverProfile,
    NotificationType,
    Payment,
    PaymentMethodKind,
    PaymentStatus,
    Trip,
    TripStatus,
    User,
    Vehicle,
)
from crossborder.services.formatting import as_aware_utc, format_currency
from crossborder.services.notifications import notify
from crossborder.services.pricing import Location, calculate_trip_price

logger = logging.getLogger("crossborder")

# A driver is busy from 2h before to 4h after each of their live trips
BUSY_BEFORE = timedelta(hours=2)
BUSY_AFTER = timedelta(hours=4)

BUSY_STATUSES = (
    TripStatus.CONFIRMED.value,
    TripStatus.ACCEPTED.value,
    TripStatus.IN_PROGRESS.value,
)


def find_available_driver(
    db: Session,
    vehicle_type: str,
    scheduled_date: datetime,
) -> Optional[Tuple[DriverProfile, Vehicle]]:
    """
    Best-rated approved, available driver with an active vehicle of
    `vehicle_type` and no live trip overlapping the requested time.
    """
    when = as_aware_utc(scheduled_date)

    busy_driver_ids = select(Trip.driver_id).where(
        Trip.driver_id.isnot(None),
        Trip.status.in_(BUSY_STATUSES),
        Trip.scheduled_date >= when - BUSY_BEFORE,
        Trip.scheduled_date <= when + BUSY_AFTER,
    )

    row = (
        db.query(DriverProfile, Vehicle)
        .join(Vehicle, Vehicle.driver_id == DriverProfile.id)
        .filter(
            DriverProfile.is_approved.is_(True),
            DriverProfile.is_available.is_(True),
            Vehicle.is_active.is_(True),
            Vehicle.vehicle_type == vehicle_type,
            DriverProfile.id.notin_(busy_driver_ids),
        )
        .order_by(DriverProfile.rating.desc(), DriverProfile.id.asc())
        .first()
    )
    if row is None:
        return None
    return row[0], row[1]


def create_booking(
    db: Session,
    client: User,
    *,
    pickup: Location,
    dropoff: Location,
    scheduled_date: datetime,
    vehicle_type: str,
    passenger_count: int = 1,
    luggage_count: int = 0,
    special_requests: Optional[str] = None,
    payment_method: str = PaymentMethodKind.CREDIT_CARD.value,
) -> Trip:
    """
    Price the trip, try to auto-assign a driver and record a pending payment.
    Commits.
    """
    when = as_aware_utc(scheduled_date)
    price = calculate_trip_price(pickup, dropoff, vehicle_type, when)

    trip = Trip(
        client_id=client.id,
        pickup_address=pickup.address,
        pickup_lat=pickup.lat,
        pickup_lng=pickup.lng,
        pickup_region=pickup.region,
        dropoff_address=dropoff.address,
        dropoff_lat=dropoff.lat,
        dropoff_lng=dropoff.lng,
        dropoff_region=dropoff.region,
        scheduled_date=when,
        estimated_duration=price.estimated_duration,
        distance_km=price.distance_km,
        vehicle_type=vehicle_type,
        base_price=price.base_price,
        surcharges=price.surcharges,
        total_price=price.total_price,
        currency=price.currency,
        status=TripStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        passenger_count=passenger_count,
        luggage_count=luggage_count,
        special_requests=special_requests,
    )

    match = find_available_driver(db, vehicle_type, when)
    if match is not None:
        driver, vehicle = match
        trip.driver_id = driver.id
        trip.vehicle_id = vehicle.id
        trip.status = TripStatus.CONFIRMED.value

    db.add(trip)
    db.flush()

    db.add(
        Payment(
            trip_id=trip.id,
            amount=price.total_price,
            currency=price.currency,
            method=payment_method,
            status=PaymentStatus.PENDING.value,
        )
    )

    if match is not None:
        driver, _ = match
        notify(
            db,
            driver.user_id,
            NotificationType.BOOKING_CONFIRMED,
            "New Booking Assigned",
            f"New trip from {pickup.address} to {dropoff.address} "
            f"({format_currency(price.total_price, price.currency)})",
            {"trip_id": trip.id},
        )

    db.commit()
    db.refresh(trip)

    logger.info(
        "booking_created trip_id=%s client_id=%s status=%s driver_id=%s total=%s",
        trip.id,
        client.id,
        trip.status,
        trip.driver_id,
        price.total_price,
    )
    return trip

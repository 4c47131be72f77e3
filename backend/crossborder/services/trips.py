# backend/crossborder/services/trips.py
"""
Trip lifecycle for drivers.

    PENDING ──accept──┐
    CONFIRMED ─accept─┴─> ACCEPTED ──start──> IN_PROGRESS ──complete──> COMPLETED

`plan_transition` is the pure rule table; the router loads the trip, asks
for the next status and applies the side effects (timestamps,
notifications, driver stats).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional

from crossborder.models import Trip, TripStatus, Urgency
from crossborder.services.formatting import as_aware_utc, time_ago

REQUEST_TTL = timedelta(minutes=15)
MAX_REQUESTS = 50

_URGENCY_RANK = {Urgency.HIGH.value: 3, Urgency.MEDIUM.value: 2, Urgency.LOW.value: 1}

_STATUS_LABELS = {
    TripStatus.PENDING.value: "pending",
    TripStatus.ACCEPTED.value: "accepted",
    TripStatus.IN_PROGRESS.value: "in_progress",
    TripStatus.COMPLETED.value: "completed",
    TripStatus.CANCELLED.value: "cancelled",
}


class TripAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    START = "start"
    COMPLETE = "complete"


class TransitionError(ValueError):
    """Raised when an action is not allowed from the trip's current state."""


@dataclass(frozen=True)
class Transition:
    action: TripAction
    new_status: Optional[str]  # None: trip is left untouched

    @property
    def changes_trip(self) -> bool:
        return self.new_status is not None


def plan_transition(
    action: TripAction | str,
    status: str,
    assigned_driver_id: Optional[int],
    driver_id: int,
) -> Transition:
    action = TripAction(action)
    owned = assigned_driver_id == driver_id

    if action is TripAction.ACCEPT:
        open_states = {TripStatus.PENDING.value, TripStatus.CONFIRMED.value}
        if status not in open_states or assigned_driver_id not in (None, driver_id):
            raise TransitionError("Trip is no longer available")
        return Transition(action, TripStatus.ACCEPTED.value)

    if action is TripAction.DECLINE:
        if status != TripStatus.PENDING.value:
            raise TransitionError("Cannot decline this trip")
        # left in the pool for other drivers
        return Transition(action, None)

    if action is TripAction.START:
        if status != TripStatus.ACCEPTED.value or not owned:
            raise TransitionError("Cannot start this trip")
        return Transition(action, TripStatus.IN_PROGRESS.value)

    if status != TripStatus.IN_PROGRESS.value or not owned:
        raise TransitionError("Cannot complete this trip")
    return Transition(action, TripStatus.COMPLETED.value)


def request_group(trip: Trip, driver_id: int) -> Optional[str]:
    """incoming / active / completed bucket for the driver's request board."""
    status = trip.status
    if status == TripStatus.PENDING.value and trip.driver_id is None:
        return "incoming"
    if status == TripStatus.CONFIRMED.value and trip.driver_id == driver_id:
        return "incoming"
    if trip.driver_id != driver_id:
        return None
    if status in (TripStatus.ACCEPTED.value, TripStatus.IN_PROGRESS.value):
        return "active"
    if status == TripStatus.COMPLETED.value:
        return "completed"
    return None


def status_label(status: str) -> str:
    return _STATUS_LABELS.get(status, "pending")


def urgency_label(urgency: Optional[str]) -> str:
    return urgency.lower() if urgency in _URGENCY_RANK else "medium"


def expires_at(trip: Trip) -> Optional[datetime]:
    # informational only; nothing revokes an expired request
    if trip.status != TripStatus.PENDING.value or trip.created_at is None:
        return None
    return as_aware_utc(trip.created_at) + REQUEST_TTL


def sort_requests(trips: Iterable[Trip]) -> List[Trip]:
    return sorted(
        trips,
        key=lambda t: (-_URGENCY_RANK.get(t.urgency, 2), as_aware_utc(t.scheduled_date)),
    )


def request_item(trip: Trip, driver_id: int, now: Optional[datetime] = None) -> dict:
    scheduled = as_aware_utc(trip.scheduled_date)
    exp = expires_at(trip)
    client = trip.client
    return {
        "id": trip.id,
        "type": request_group(trip, driver_id),
        "client": {
            "id": trip.client_id,
            "name": client.name if client else "Unknown Client",
            "phone": client.phone if client else None,
            "avatar": client.avatar if client else None,
        },
        "route": {
            "from": trip.pickup_address,
            "to": trip.dropoff_address,
            "distance_km": trip.distance_km,
            "estimated_duration": trip.estimated_duration,
        },
        "schedule": {
            "requested_at": time_ago(trip.created_at, now) if trip.created_at else None,
            "pickup_date": scheduled.date().isoformat(),
            "pickup_time": scheduled.strftime("%H:%M"),
        },
        "service": {
            "vehicle_type": trip.vehicle_type,
            "passengers": trip.passenger_count,
            "luggage": trip.luggage_count,
            "special_requests": trip.special_requests,
        },
        "pricing": {
            "estimated_earnings": float(trip.total_price or 0),
            "currency": trip.currency,
        },
        "urgency": urgency_label(trip.urgency),
        "status": status_label(trip.status),
        "notes": trip.notes,
        "expires_at": exp.isoformat() if exp else None,
    }


def group_requests(trips: Iterable[Trip], driver_id: int, now: Optional[datetime] = None) -> dict:
    grouped: dict = {"incoming": [], "active": [], "completed": []}
    for trip in sort_requests(trips)[:MAX_REQUESTS]:
        bucket = request_group(trip, driver_id)
        if bucket:
            grouped[bucket].append(request_item(trip, driver_id, now))
    return grouped


def trip_to_dict(trip: Trip) -> dict:
    return {
        "id": trip.id,
        "client_id": trip.client_id,
        "driver_id": trip.driver_id,
        "vehicle_id": trip.vehicle_id,
        "pickup": {
            "address": trip.pickup_address,
            "lat": trip.pickup_lat,
            "lng": trip.pickup_lng,
            "region": trip.pickup_region,
        },
        "dropoff": {
            "address": trip.dropoff_address,
            "lat": trip.dropoff_lat,
            "lng": trip.dropoff_lng,
            "region": trip.dropoff_region,
        },
        "scheduled_date": as_aware_utc(trip.scheduled_date).isoformat(),
        "estimated_duration": trip.estimated_duration,
        "distance_km": trip.distance_km,
        "vehicle_type": trip.vehicle_type,
        "base_price": float(trip.base_price or 0),
        "surcharges": trip.surcharges or {},
        "total_price": float(trip.total_price or 0),
        "currency": trip.currency,
        "status": trip.status,
        "payment_status": trip.payment_status,
        "urgency": trip.urgency,
        "passenger_count": trip.passenger_count,
        "luggage_count": trip.luggage_count,
        "special_requests": trip.special_requests,
        "driver_notes": trip.driver_notes,
        "cancellation_reason": trip.cancellation_reason,
        "accepted_at": _iso(trip.accepted_at),
        "started_at": _iso(trip.started_at),
        "completed_at": _iso(trip.completed_at),
        "created_at": _iso(trip.created_at),
    }


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return as_aware_utc(dt).isoformat() if dt else None

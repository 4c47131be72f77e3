# backend/crossborder/services/booking_wizard.py
"""
Step-by-step checks for the booking wizard.

The wizard submits the whole draft booking on every step, keyed by section:

    {"route": {...}, "vehicle": {...}, "datetime": {...},
     "passengers": {...}, "contact": {...}, "payment": {...}}

`validate_step` checks only the requested section (it may read other
sections, e.g. passenger totals against the chosen vehicle's capacity) and
returns field-keyed errors.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional

from crossborder.services.pricing import HK_TZ, find_vehicle_class
from crossborder.services.validation import TIME_RE, check_email, check_phone

STEPS = ["route", "vehicle", "datetime", "passengers", "contact", "payment", "review"]

PAYMENT_METHODS = {"card", "cash", "wechat", "alipay"}

PASSENGER_LIMITS = {
    "adults": (1, 8),
    "children": (0, 4),
    "infants": (0, 2),
    "luggage": (0, 10),
}


def next_step(step: str) -> Optional[str]:
    idx = STEPS.index(step)
    return STEPS[idx + 1] if idx + 1 < len(STEPS) else None


def _section(booking: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = booking.get(name) or {}
    return value if isinstance(value, dict) else {}


def _address(point: Any) -> str:
    if isinstance(point, dict):
        return str(point.get("address") or "").strip()
    return ""


def _validate_route(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    route = _section(booking, "route")
    if not _address(route.get("pickup")) or not _address(route.get("destination")):
        return {"route": "Please select both pickup and destination locations"}
    return {}


def _validate_vehicle(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    vehicle_id = _section(booking, "vehicle").get("vehicle_id")
    if not vehicle_id:
        return {"vehicle": "Please select a vehicle"}
    if find_vehicle_class(vehicle_id) is None:
        return {"vehicle": "Unknown vehicle selection"}
    return {}


def _validate_datetime(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    dt = _section(booking, "datetime")
    raw_date = str(dt.get("date") or "").strip()
    raw_time = str(dt.get("time") or "").strip()

    if not raw_date or not raw_time:
        return {"datetime": "Please select both date and time"}

    errors: Dict[str, str] = {}
    try:
        picked = date.fromisoformat(raw_date)
        if picked < today:
            errors["date"] = "Date cannot be in the past"
    except ValueError:
        errors["date"] = "Invalid date"

    if not TIME_RE.match(raw_time):
        errors["time"] = "Time must be in HH:MM format"

    return errors


def _as_int(value: Any, default: int = 0) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _validate_passengers(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    pax = _section(booking, "passengers")
    errors: Dict[str, str] = {}
    counts: Dict[str, int] = {}

    for key, (lo, hi) in PASSENGER_LIMITS.items():
        value = _as_int(pax.get(key), default=lo)
        if value is None or value < lo or value > hi:
            errors[key] = f"{key.capitalize()} must be between {lo} and {hi}"
        else:
            counts[key] = value

    vehicle = find_vehicle_class(_section(booking, "vehicle").get("vehicle_id"))
    if vehicle and not errors:
        # infants travel on laps and do not take a seat
        seated = counts["adults"] + counts["children"]
        if seated > vehicle.capacity:
            errors["passengers"] = f"{vehicle.name} seats at most {vehicle.capacity} passengers"

    return errors


def _validate_contact(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    contact = _section(booking, "contact")
    errors: Dict[str, str] = {}

    if not str(contact.get("full_name") or "").strip():
        errors["full_name"] = "Full name is required"

    email = str(contact.get("email") or "").strip()
    if not email:
        errors["email"] = "Email is required"
    else:
        msg = check_email(email)
        if msg:
            errors["email"] = msg

    phone = str(contact.get("phone") or "").strip()
    if not phone:
        errors["phone"] = "Phone number is required"
    elif check_phone(phone.replace(" ", "").replace("-", ""), strict=True):
        errors["phone"] = "Invalid phone number"

    return errors


def _validate_payment(booking: Dict[str, Any], today: date) -> Dict[str, str]:
    payment = _section(booking, "payment")
    errors: Dict[str, str] = {}
    if payment.get("method") not in PAYMENT_METHODS:
        errors["method"] = "Please select a payment method"
    if not payment.get("accept_terms"):
        errors["accept_terms"] = "You must accept the terms and conditions"
    return errors


_VALIDATORS = {
    "route": _validate_route,
    "vehicle": _validate_vehicle,
    "datetime": _validate_datetime,
    "passengers": _validate_passengers,
    "contact": _validate_contact,
    "payment": _validate_payment,
}


def validate_step(step: str, booking: Dict[str, Any], today: Optional[date] = None) -> Dict[str, str]:
    """
    Field-keyed errors for one wizard step. The final "review" step
    re-runs every other step.
    """
    if step not in STEPS:
        raise ValueError(f"Unknown booking step: {step}")

    today = today or datetime.now(HK_TZ).date()

    if step == "review":
        errors: Dict[str, str] = {}
        for name, fn in _VALIDATORS.items():
            errors.update(fn(booking, today))
        return errors

    return _VALIDATORS[step](booking, today)

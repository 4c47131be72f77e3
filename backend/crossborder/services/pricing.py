# backend/crossborder/services/pricing.py
"""
Trip pricing.

Two calculators live here:

- `calculate_trip_price`: the server-side engine used when a booking is
  created (haversine distance, per-km vehicle rates, border/peak/night/weekend
  surcharges and a long-distance discount).
- `wizard_quote`: the simple quote shown in the booking wizard, scaled from
  the vehicle class base fare over the standard 35 km HK-Shenzhen route.

Surcharge hours are evaluated in Hong Kong local time.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from crossborder.models import VehicleType

HK_TZ = timezone(timedelta(hours=8), name="HKT")

EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 40.0
BORDER_CROSSING_MINUTES = 60

# HKD per km
VEHICLE_RATES: Dict[str, float] = {
    VehicleType.BUSINESS.value: 12,
    VehicleType.EXECUTIVE.value: 18,
    VehicleType.LUXURY.value: 25,
    VehicleType.SUV.value: 20,
    VehicleType.VAN.value: 15,
}

BORDER_FEE = 200
PEAK_HOUR_MULTIPLIER = 1.3
DISTANCE_THRESHOLD_KM = 50
LONG_DISTANCE_RATE = 0.8
NIGHT_SURCHARGE = 100
WEEKEND_SURCHARGE = 50

# Wizard
STANDARD_ROUTE_KM = 35
TAX_RATE = 0.1
DEFAULT_BASE_FARE = 800


@dataclass(frozen=True)
class VehicleClass:
    id: str
    name: str
    category: str
    capacity: int
    base_price: int


VEHICLE_CATALOG: List[VehicleClass] = [
    VehicleClass("business-class", "Business Class", "business", 3, 800),
    VehicleClass("executive-suv", "Executive SUV", "executive", 6, 1200),
    VehicleClass("luxury-premium", "Luxury Premium", "luxury", 3, 1800),
]


def find_vehicle_class(vehicle_id: Optional[str]) -> Optional[VehicleClass]:
    for v in VEHICLE_CATALOG:
        if v.id == vehicle_id:
            return v
    return None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Location:
    address: str
    lat: float
    lng: float
    region: str = "HK"  # "HK" | "CHINA"


@dataclass
class PriceBreakdown:
    base_price: int
    surcharges: Dict[str, float] = field(default_factory=dict)
    total_price: int = 0
    distance_km: float = 0.0
    estimated_duration: int = 0
    is_cross_border: bool = False
    currency: str = "HKD"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _local(dt: datetime) -> datetime:
    # Naive datetimes are taken as already in HK local time
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(HK_TZ)


def is_peak_hour(dt: datetime) -> bool:
    local = _local(dt)
    weekday = local.weekday() < 5
    return weekday and (7 <= local.hour <= 9 or 17 <= local.hour <= 19)


def is_night(dt: datetime) -> bool:
    hour = _local(dt).hour
    return hour >= 22 or hour <= 6


def is_weekend(dt: datetime) -> bool:
    return _local(dt).weekday() >= 5


def calculate_trip_price(
    pickup: Location,
    dropoff: Location,
    vehicle_type: str,
    scheduled_date: datetime,
) -> PriceBreakdown:
    distance = haversine_km(pickup.lat, pickup.lng, dropoff.lat, dropoff.lng)

    is_cross_border = pickup.region != dropoff.region
    duration = round_half_up(distance / AVERAGE_SPEED_KMH * 60)
    if is_cross_border:
        duration += BORDER_CROSSING_MINUTES

    rate = VEHICLE_RATES.get(vehicle_type, VEHICLE_RATES[VehicleType.BUSINESS.value])
    base = distance * rate

    surcharges: Dict[str, float] = {}
    total_surcharge = 0.0

    if is_cross_border:
        surcharges["border_fee"] = BORDER_FEE
        total_surcharge += BORDER_FEE

    if is_peak_hour(scheduled_date):
        peak = base * (PEAK_HOUR_MULTIPLIER - 1)
        surcharges["peak_hour"] = round(peak, 2)
        total_surcharge += peak

    if distance > DISTANCE_THRESHOLD_KM:
        discount = base * (1 - LONG_DISTANCE_RATE)
        surcharges["distance_surcharge"] = -round(discount, 2)
        total_surcharge -= discount

    if is_night(scheduled_date):
        surcharges["time_surcharge"] = NIGHT_SURCHARGE
        total_surcharge += NIGHT_SURCHARGE

    if is_weekend(scheduled_date):
        surcharges["time_surcharge"] = surcharges.get("time_surcharge", 0) + WEEKEND_SURCHARGE
        total_surcharge += WEEKEND_SURCHARGE

    return PriceBreakdown(
        base_price=round_half_up(base),
        surcharges=surcharges,
        total_price=round_half_up(base + total_surcharge),
        distance_km=round_half_up(distance * 10) / 10,
        estimated_duration=duration,
        is_cross_border=is_cross_border,
    )


def price_estimate(pickup: Location, dropoff: Location, vehicle_type: str, now: Optional[datetime] = None) -> dict:
    result = calculate_trip_price(pickup, dropoff, vehicle_type, now or datetime.now(HK_TZ))
    return {
        "min_price": result.base_price,
        "max_price": round_half_up(result.base_price * 1.5),
        "distance_km": result.distance_km,
        "estimated_duration": result.estimated_duration,
        "currency": result.currency,
    }


def wizard_quote(base_price: Optional[float] = None, distance_km: Optional[float] = None) -> dict:
    """
    subtotal = base_price * (distance / 35); tax = subtotal * 10%.
    Missing inputs fall back to the HK$800 business fare over 35 km.
    """
    base = base_price or DEFAULT_BASE_FARE
    distance = distance_km or STANDARD_ROUTE_KM
    subtotal = round_half_up(base * (distance / STANDARD_ROUTE_KM))
    tax = round_half_up(subtotal * TAX_RATE)
    return {
        "base_price": base,
        "surcharges": [],
        "subtotal": subtotal,
        "tax": tax,
        "total": subtotal + tax,
        "currency": "HKD",
    }

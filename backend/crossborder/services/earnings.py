# backend/crossborder/services/earnings.py
"""
Driver earnings aggregation. Pure functions over already-loaded trips so the
grouping rules can be tested without a database.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from crossborder.models import Trip
from crossborder.services.formatting import as_aware_utc, utcnow

PERIODS = ("daily", "weekly", "monthly")

TRIP_TYPES = (
    "Cross-border (HK-SZ)",
    "Long distance (HK-GZ)",
    "Local (HK only)",
)


def _shift_months(dt: datetime, months: int) -> datetime:
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    # clamp day for shorter months
    for day in (dt.day, 30, 29, 28):
        try:
            return dt.replace(year=year, month=month, day=day)
        except ValueError:
            continue
    raise ValueError("unreachable")


def earnings_window(
    period: str,
    now: Optional[datetime] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """
    An explicit start wins, running to `end` or to now when no end is given.
    Otherwise:
    daily -> last 7 days, weekly -> last 30 days, monthly -> last 6 months.
    """
    now = as_aware_utc(now) or utcnow()
    if start:
        return as_aware_utc(start), (as_aware_utc(end) if end else now)

    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "weekly":
        return midnight - timedelta(days=30), now
    if period == "monthly":
        return _shift_months(midnight, -6), now
    return midnight - timedelta(days=7), now


def period_key(dt: datetime, period: str) -> str:
    dt = as_aware_utc(dt)
    if period == "weekly":
        # weeks start on Sunday
        week_start = dt - timedelta(days=(dt.weekday() + 1) % 7)
        return week_start.date().isoformat()
    if period == "monthly":
        return f"{dt.year}-{dt.month:02d}"
    return dt.date().isoformat()


def _amount(trip: Trip) -> float:
    return float(trip.total_price or 0)


def group_by_period(trips: Iterable[Trip], period: str) -> List[dict]:
    grouped: "OrderedDict[str, dict]" = OrderedDict()
    for trip in trips:
        if trip.completed_at is None:
            continue
        key = period_key(trip.completed_at, period)
        bucket = grouped.setdefault(key, {"date": key, "total_earnings": 0.0, "trips": 0})
        bucket["total_earnings"] += _amount(trip)
        bucket["trips"] += 1

    series = []
    for bucket in grouped.values():
        bucket["avg_per_trip"] = bucket["total_earnings"] / bucket["trips"] if bucket["trips"] else 0.0
        series.append(bucket)
    return sorted(series, key=lambda b: b["date"])


def trip_type(pickup: Optional[str], dropoff: Optional[str]) -> str:
    pickup = pickup or ""
    dropoff = dropoff or ""
    if "Hong Kong" in pickup and "Shenzhen" in dropoff:
        return TRIP_TYPES[0]
    if "Hong Kong" in pickup and "Guangzhou" in dropoff:
        return TRIP_TYPES[1]
    return TRIP_TYPES[2]


def trip_type_breakdown(trips: Iterable[Trip]) -> List[dict]:
    counts = {name: {"count": 0, "earnings": 0.0} for name in TRIP_TYPES}
    for trip in trips:
        bucket = counts[trip_type(trip.pickup_address, trip.dropoff_address)]
        bucket["count"] += 1
        bucket["earnings"] += _amount(trip)

    total = sum(b["count"] for b in counts.values())
    return [
        {
            "type": name,
            "count": data["count"],
            "earnings": data["earnings"],
            "percentage": int(data["count"] * 100 / total + 0.5) if total else 0,
        }
        for name, data in counts.items()
    ]


def summarize(trips: List[Trip], total_pending: float = 0.0) -> dict:
    total = sum(_amount(t) for t in trips)
    count = len(trips)
    return {
        "total_earnings": total,
        "total_trips": count,
        "avg_per_trip": total / count if count else 0.0,
        "total_pending": float(total_pending or 0),
    }


def earnings_trip_row(trip: Trip) -> dict:
    completed = as_aware_utc(trip.completed_at)
    return {
        "id": trip.id,
        "date": completed.date().isoformat() if completed else None,
        "time": completed.strftime("%H:%M") if completed else None,
        "route": {"from": trip.pickup_address, "to": trip.dropoff_address},
        "client": trip.client.name if trip.client else "Unknown",
        "earnings": _amount(trip),
        "currency": trip.currency,
        "payment_status": trip.payment_status,
        "distance_km": trip.distance_km,
        "duration": trip.estimated_duration,
    }

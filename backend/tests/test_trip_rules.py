# backend/tests/test_trip_rules.py
"""
Pure trip lifecycle and earnings rules; no database involved.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from crossborder.models import Trip, TripStatus
from crossborder.services.earnings import (
    _shift_months,
    earnings_window,
    group_by_period,
    period_key,
    summarize,
    trip_type,
    trip_type_breakdown,
)
from crossborder.services.trips import (
    TransitionError,
    TripAction,
    expires_at,
    group_requests,
    plan_transition,
    request_group,
    sort_requests,
    status_label,
    urgency_label,
)

ME = 7
OTHER = 8
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _trip(**kw):
    defaults = dict(
        status=TripStatus.PENDING.value,
        driver_id=None,
        client_id=1,
        pickup_address="Central, Hong Kong",
        dropoff_address="Futian, Shenzhen",
        scheduled_date=NOW + timedelta(days=1),
        vehicle_type="BUSINESS",
        passenger_count=1,
        luggage_count=0,
        total_price=500,
        currency="HKD",
        urgency="MEDIUM",
    )
    defaults.update(kw)
    return Trip(**defaults)


# --- plan_transition ---

@pytest.mark.parametrize("status", [TripStatus.PENDING.value, TripStatus.CONFIRMED.value])
def test_accept_from_open_states(status):
    t = plan_transition("accept", status, None, ME)
    assert t.new_status == TripStatus.ACCEPTED.value
    assert t.changes_trip


def test_accept_confirmed_trip_assigned_to_me():
    t = plan_transition(TripAction.ACCEPT, TripStatus.CONFIRMED.value, ME, ME)
    assert t.new_status == TripStatus.ACCEPTED.value


def test_cannot_accept_someone_elses_trip():
    with pytest.raises(TransitionError, match="no longer available"):
        plan_transition("accept", TripStatus.CONFIRMED.value, OTHER, ME)


def test_cannot_accept_completed_trip():
    with pytest.raises(TransitionError):
        plan_transition("accept", TripStatus.COMPLETED.value, None, ME)


def test_decline_leaves_trip_untouched():
    t = plan_transition("decline", TripStatus.PENDING.value, None, ME)
    assert t.new_status is None
    assert not t.changes_trip


def test_start_and_complete_require_ownership_and_order():
    assert plan_transition("start", TripStatus.ACCEPTED.value, ME, ME).new_status == TripStatus.IN_PROGRESS.value
    assert plan_transition("complete", TripStatus.IN_PROGRESS.value, ME, ME).new_status == TripStatus.COMPLETED.value

    with pytest.raises(TransitionError, match="Cannot start"):
        plan_transition("start", TripStatus.ACCEPTED.value, OTHER, ME)
    with pytest.raises(TransitionError, match="Cannot start"):
        plan_transition("start", TripStatus.PENDING.value, ME, ME)
    with pytest.raises(TransitionError, match="Cannot complete"):
        plan_transition("complete", TripStatus.ACCEPTED.value, ME, ME)


def test_unknown_action_is_rejected():
    with pytest.raises(ValueError):
        plan_transition("teleport", TripStatus.PENDING.value, None, ME)


# --- request board ---

def test_request_groups():
    assert request_group(_trip(), ME) == "incoming"
    assert request_group(_trip(status=TripStatus.CONFIRMED.value, driver_id=ME), ME) == "incoming"
    assert request_group(_trip(status=TripStatus.CONFIRMED.value, driver_id=OTHER), ME) is None
    assert request_group(_trip(status=TripStatus.IN_PROGRESS.value, driver_id=ME), ME) == "active"
    assert request_group(_trip(status=TripStatus.COMPLETED.value, driver_id=ME), ME) == "completed"
    assert request_group(_trip(status=TripStatus.CANCELLED.value, driver_id=ME), ME) is None


def test_requests_sorted_by_urgency_then_pickup_time():
    later_high = _trip(urgency="HIGH", scheduled_date=NOW + timedelta(days=3))
    soon_low = _trip(urgency="LOW", scheduled_date=NOW + timedelta(hours=2))
    soon_medium = _trip(urgency="MEDIUM", scheduled_date=NOW + timedelta(hours=1))
    later_medium = _trip(urgency="MEDIUM", scheduled_date=NOW + timedelta(days=2))

    ordered = sort_requests([soon_low, later_medium, soon_medium, later_high])
    assert ordered == [later_high, soon_medium, later_medium, soon_low]


def test_group_requests_builds_board_items():
    board = group_requests(
        [_trip(), _trip(status=TripStatus.ACCEPTED.value, driver_id=ME)],
        ME,
        now=NOW,
    )
    assert len(board["incoming"]) == 1
    assert len(board["active"]) == 1
    assert board["completed"] == []

    item = board["incoming"][0]
    assert item["client"]["name"] == "Unknown Client"
    assert item["route"]["from"] == "Central, Hong Kong"
    assert item["pricing"]["estimated_earnings"] == 500.0
    assert item["status"] == "pending"
    assert item["urgency"] == "medium"


def test_labels_and_expiry():
    assert status_label(TripStatus.IN_PROGRESS.value) == "in_progress"
    assert status_label(TripStatus.CONFIRMED.value) == "pending"
    assert urgency_label("HIGH") == "high"
    assert urgency_label(None) == "medium"

    created = datetime(2026, 10, 19, 10, 0)
    assert expires_at(_trip(created_at=created)) == datetime(2026, 10, 19, 10, 15, tzinfo=timezone.utc)
    assert expires_at(_trip(status=TripStatus.ACCEPTED.value, created_at=created)) is None


# --- earnings ---

def test_earnings_windows():
    start, end = earnings_window("daily", now=NOW)
    assert start == datetime(2026, 10, 12, tzinfo=timezone.utc)
    assert end == NOW

    start, _ = earnings_window("weekly", now=NOW)
    assert start == datetime(2026, 9, 19, tzinfo=timezone.utc)

    start, _ = earnings_window("monthly", now=NOW)
    assert start == datetime(2026, 4, 19, tzinfo=timezone.utc)

    explicit = earnings_window("daily", now=NOW, start=datetime(2026, 1, 1), end=datetime(2026, 2, 1))
    assert explicit == (
        datetime(2026, 1, 1, tzinfo=timezone.utc),
        datetime(2026, 2, 1, tzinfo=timezone.utc),
    )

    open_ended = earnings_window("monthly", now=NOW, start=datetime(2026, 9, 1))
    assert open_ended == (datetime(2026, 9, 1, tzinfo=timezone.utc), NOW)


def test_shift_months_clamps_day():
    assert _shift_months(datetime(2026, 8, 31), -6) == datetime(2026, 2, 28)
    assert _shift_months(datetime(2026, 11, 15), 3) == datetime(2027, 2, 15)


def test_period_keys():
    wednesday = datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc)
    assert period_key(wednesday, "daily") == "2026-10-21"
    assert period_key(wednesday, "weekly") == "2026-10-18"  # the Sunday before
    assert period_key(datetime(2026, 10, 18, tzinfo=timezone.utc), "weekly") == "2026-10-18"
    assert period_key(wednesday, "monthly") == "2026-10"


def test_group_by_period_and_summary():
    trips = [
        _trip(completed_at=datetime(2026, 10, 15, 9, 0), total_price=300),
        _trip(completed_at=datetime(2026, 10, 15, 18, 0), total_price=500),
        _trip(completed_at=datetime(2026, 10, 16, 9, 0), total_price=400),
        _trip(completed_at=None, total_price=999),
    ]

    series = group_by_period(trips, "daily")
    assert series == [
        {"date": "2026-10-15", "total_earnings": 800.0, "trips": 2, "avg_per_trip": 400.0},
        {"date": "2026-10-16", "total_earnings": 400.0, "trips": 1, "avg_per_trip": 400.0},
    ]

    summary = summarize(trips[:3], total_pending=250)
    assert summary == {
        "total_earnings": 1200.0,
        "total_trips": 3,
        "avg_per_trip": 400.0,
        "total_pending": 250.0,
    }
    assert summarize([])["avg_per_trip"] == 0.0


def test_trip_type_breakdown():
    assert trip_type("Central, Hong Kong", "Futian, Shenzhen") == "Cross-border (HK-SZ)"
    assert trip_type("Central, Hong Kong", "Tianhe, Guangzhou") == "Long distance (HK-GZ)"
    assert trip_type("Central", None) == "Local (HK only)"

    trips = [
        _trip(total_price=100),
        _trip(total_price=100),
        _trip(dropoff_address="Tianhe, Guangzhou", total_price=900),
    ]
    rows = {row["type"]: row for row in trip_type_breakdown(trips)}
    assert rows["Cross-border (HK-SZ)"]["count"] == 2
    assert rows["Cross-border (HK-SZ)"]["percentage"] == 67
    assert rows["Long distance (HK-GZ)"]["earnings"] == 900.0
    assert rows["Local (HK only)"]["percentage"] == 0

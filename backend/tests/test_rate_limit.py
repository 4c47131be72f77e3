# backend/tests/test_rate_limit.py
from __future__ import annotations

import pytest
from fastapi import HTTPException

from crossborder.core.rate_limit import LoginAttemptTracker, WindowLimiter


def test_window_limiter_blocks_then_recovers():
    limiter = WindowLimiter("login", limit=2, window_seconds=60)
    limiter.check("10.0.0.1", now=1000.0)
    limiter.check("10.0.0.1", now=1010.0)

    with pytest.raises(HTTPException) as exc:
        limiter.check("10.0.0.1", now=1020.0)
    assert exc.value.status_code == 429
    assert exc.value.detail["code"] == "RATE_LIMIT_EXCEEDED"
    assert exc.value.headers["Retry-After"] == "41"

    # other callers are unaffected
    limiter.check("10.0.0.2", now=1020.0)

    # the first hit has aged out
    limiter.check("10.0.0.1", now=1061.0)


def test_lockout_after_repeated_failures():
    tracker = LoginAttemptTracker(max_attempts=3, window_seconds=300, lockout_seconds=900)

    assert tracker.register_failure("Rider@Example.com", now=0) == 2
    assert tracker.register_failure("rider@example.com", now=10) == 1
    assert tracker.remaining_lockout("rider@example.com", now=10) == 0
    assert tracker.register_failure("rider@example.com ", now=20) == 0

    assert tracker.remaining_lockout("rider@example.com", now=20) == 901
    assert tracker.remaining_lockout("rider@example.com", now=921) == 0


def test_failures_outside_window_do_not_count():
    tracker = LoginAttemptTracker(max_attempts=2, window_seconds=60, lockout_seconds=900)
    tracker.register_failure("a@example.com", now=0)
    assert tracker.register_failure("a@example.com", now=120) == 1

    tracker.register_success("a@example.com")
    assert tracker.register_failure("a@example.com", now=121) == 1


def test_idle_callers_are_forgotten():
    limiter = WindowLimiter("register", limit=5, window_seconds=60)
    for n in range(50):
        limiter.check(f"10.0.1.{n}", now=1000.0)
    assert len(limiter._hits) == 50

    limiter.check("10.0.2.1", now=1200.0)
    assert list(limiter._hits) == [("register", "10.0.2.1")]


def test_expired_failures_and_locks_are_forgotten():
    tracker = LoginAttemptTracker(max_attempts=2, window_seconds=60, lockout_seconds=300)
    tracker.register_failure("stale@example.com", now=100)
    tracker.register_failure("locked@example.com", now=100)
    tracker.register_failure("locked@example.com", now=101)

    # the lock outlives the failure window
    tracker.register_failure("new@example.com", now=200)
    assert set(tracker._records) == {"locked@example.com", "new@example.com"}

    tracker.register_failure("new@example.com", now=500)
    assert set(tracker._records) == {"new@example.com"}

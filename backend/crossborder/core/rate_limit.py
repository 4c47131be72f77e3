# backend/crossborder/core/rate_limit.py
"""
In-process abuse guards for the auth endpoints.

- WindowLimiter: N requests per window per (scope, client IP), used as a
  route dependency. One shared "login" scope covers /auth/login,
  /auth/token and the password reset endpoints.
- LoginAttemptTracker: per-email lockout after repeated bad passwords,
  independent of the caller's IP.

State lives in process memory, so limits are per worker.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from fastapi import HTTPException, Request, status

from crossborder.core.config import settings
from crossborder.core.errors import ErrorCode

logger = logging.getLogger("crossborder.security")


def client_ip(request: Request) -> str:
    # first hop of X-Forwarded-For is the original client
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip() or "unknown"
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class WindowLimiter:
    def __init__(self, scope: str, limit: int, window_seconds: int):
        self.scope = scope
        self.limit = int(limit)
        self.window_seconds = int(window_seconds)
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}
        self._last_sweep = 0.0

    def _sweep(self, now: float) -> None:
        # drop callers whose newest hit has left the window
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def check(self, ip: str, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        self._sweep(now)
        hits = self._hits.setdefault((self.scope, ip), deque())
        while hits and hits[0] <= now - self.window_seconds:
            hits.popleft()

        if len(hits) >= self.limit:
            retry_after = int(hits[0] + self.window_seconds - now) + 1
            logger.warning("rate_limited scope=%s ip=%s retry_after=%s", self.scope, ip, retry_after)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "code": ErrorCode.RATE_LIMIT_EXCEEDED.value,
                    "message": "Too many requests, please slow down.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )
        hits.append(now)

    def reset(self) -> None:
        self._hits.clear()
        self._last_sweep = 0.0

    # FastAPI inspects this signature, so it must take only the request
    async def __call__(self, request: Request) -> None:
        self.check(client_ip(request))


@dataclass
class _AttemptRecord:
    failures: List[float] = field(default_factory=list)
    locked_until: Optional[float] = None


class LoginAttemptTracker:
    """
    Failed-login counter keyed by normalized email.

    After `max_attempts` failures inside `window_seconds` the email is locked
    for `lockout_seconds`. A successful login clears the record.
    """

    def __init__(self, max_attempts: int, window_seconds: int, lockout_seconds: int):
        self.max_attempts = int(max_attempts)
        self.window_seconds = int(window_seconds)
        self.lockout_seconds = int(lockout_seconds)
        self._records: Dict[str, _AttemptRecord] = {}
        self._last_sweep = 0.0

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        stale = [
            key
            for key, rec in self._records.items()
            if (rec.locked_until is None or rec.locked_until <= now) and all(ts < cutoff for ts in rec.failures)
        ]
        for key in stale:
            del self._records[key]

    @staticmethod
    def _key(email: str) -> str:
        return (email or "").strip().lower()

    def remaining_lockout(self, email: str, now: Optional[float] = None) -> int:
        """Seconds until the lockout ends, 0 if not locked."""
        now = time.time() if now is None else now
        rec = self._records.get(self._key(email))
        if rec is None or rec.locked_until is None:
            return 0
        if rec.locked_until <= now:
            self._records.pop(self._key(email), None)
            return 0
        return int(rec.locked_until - now) + 1

    def register_failure(self, email: str, now: Optional[float] = None) -> int:
        """Record one failure; returns remaining attempts before lockout."""
        now = time.time() if now is None else now
        self._sweep(now)
        key = self._key(email)
        rec = self._records.setdefault(key, _AttemptRecord())

        cutoff = now - self.window_seconds
        rec.failures = [ts for ts in rec.failures if ts >= cutoff]
        rec.failures.append(now)

        if len(rec.failures) >= self.max_attempts:
            rec.locked_until = now + self.lockout_seconds
            logger.warning("login_locked email=%s attempts=%s", key, len(rec.failures))
            return 0

        return self.max_attempts - len(rec.failures)

    def register_success(self, email: str) -> None:
        self._records.pop(self._key(email), None)

    def reset(self) -> None:
        self._records.clear()
        self._last_sweep = 0.0


login_rate_limit = WindowLimiter("login", settings.login_rate_limit, 60)
register_rate_limit = WindowLimiter("register", settings.register_rate_limit, 60)
refresh_rate_limit = WindowLimiter("refresh", settings.refresh_rate_limit, 60)

login_attempts = LoginAttemptTracker(
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_attempt_window_seconds,
    lockout_seconds=settings.login_lockout_seconds,
)


def reset_rate_limits() -> None:
    """Clear all in-process limiter state (tests, admin tooling)."""
    for limiter in (login_rate_limit, register_rate_limit, refresh_rate_limit):
        limiter.reset()
    login_attempts.reset()

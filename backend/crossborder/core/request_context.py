# backend/crossborder/core/request_context.py
"""
Per-request state shared by the HTTP middleware, the DB hooks and log
records: the request id, who is acting once auth has resolved a session,
and query timings.

The state is one mutable object held in a ContextVar. Sync routes run in a
threadpool with a copy of the context, so they see the same object and
their updates (bind_actor, record_db_query) reach the middleware.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional


@dataclass
class RequestState:
    request_id: str = "-"
    user_id: Optional[int] = None
    acting_role: Optional[str] = None
    query_count: int = 0
    db_total_ms: float = 0.0
    slowest_query_ms: float = 0.0
    slowest_sql: str = ""

    def add_query(self, duration_ms: float, sql: str = "") -> None:
        self.query_count += 1
        self.db_total_ms += duration_ms
        if duration_ms > self.slowest_query_ms:
            self.slowest_query_ms = duration_ms
            self.slowest_sql = sql[:240]


_state: ContextVar[Optional[RequestState]] = ContextVar("cb_request_state", default=None)


def begin_request(request_id: str) -> RequestState:
    state = RequestState(request_id=request_id)
    _state.set(state)
    return state


def end_request() -> None:
    _state.set(None)


def current_request() -> Optional[RequestState]:
    return _state.get()


def get_request_id() -> str:
    state = _state.get()
    return state.request_id if state is not None else "-"


def bind_actor(user_id: int, acting_role: Optional[str]) -> None:
    """Tag the rest of this request's log lines with the signed-in user."""
    state = _state.get()
    if state is not None:
        state.user_id = user_id
        state.acting_role = acting_role


def record_db_query(duration_ms: float, sql: str = "") -> None:
    # Outside a request (alembic, scripts) there is nothing to accumulate into
    state = _state.get()
    if state is not None:
        state.add_query(float(duration_ms), sql)

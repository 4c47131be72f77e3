# backend/crossborder/db/session.py
"""
Engine and session factory.

Every statement's duration is added to the current request's state, so the
request log line can report DB time; single statements over the slow-query
budget are logged here.
"""

import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from crossborder.core.config import settings
from crossborder.core.request_context import get_request_id, record_db_query

logger = logging.getLogger("crossborder.db")

_QUERY_STARTS = "cb_query_starts"


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # sync routes run in FastAPI's threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


def watch_queries(target: Engine, slow_ms: float, log_sql: bool = False) -> None:
    """Time each cursor execution on `target`. Parameters are never logged."""

    @event.listens_for(target, "before_cursor_execute")
    def _started(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_QUERY_STARTS, []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finished(conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get(_QUERY_STARTS)
        if not starts:
            return

        elapsed_ms = (time.perf_counter() - starts.pop()) * 1000.0
        sql = " ".join((statement or "").split())
        record_db_query(elapsed_ms, sql)

        if elapsed_ms >= slow_ms:
            logger.warning(
                "slow_db_query request_id=%s duration_ms=%.2f sql=%s",
                get_request_id(),
                elapsed_ms,
                sql[:240] if log_sql else "-",
            )


engine = create_engine(settings.database_url, future=True, **_engine_options(settings.database_url))
watch_queries(engine, float(settings.slow_db_query_ms), bool(settings.log_db_sql))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# backend/crossborder/api/v1/health.py
"""
Probes for the load balancer and deploy checks.

- GET /api/v1/health     liveness, never touches the database
- GET /api/v1/health/db  readiness, runs SELECT 1
"""

import logging
import time

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crossborder.core.config import settings
from crossborder.db.session import get_db
from crossborder.services.formatting import utcnow

logger = logging.getLogger("crossborder.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness probe")
def health():
    return {
        "status": "ok",
        "service": "crossborder-backend",
        "environment": settings.environment,
        "version": settings.version,
        "timestamp_utc": utcnow().isoformat(),
    }


@router.get("/db", summary="Database readiness probe")
def health_db(db: Session = Depends(get_db)):
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("db_probe_failed")
        raise HTTPException(
            status_code=503,
            detail={
                "code": "DB_UNAVAILABLE",
                "message": "Database is unreachable",
                "db": "down",
                "error": type(exc).__name__,
            },
        )

    return {
        "status": "ok",
        "db": "up",
        "backend": db.get_bind().dialect.name,
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }

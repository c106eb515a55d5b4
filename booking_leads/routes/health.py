from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from booking_leads import __version__
from booking_leads.core.config import settings
from booking_leads.db.session import health_check as database_health_check
from booking_leads.services.redis import health_check as redis_health_check

router = APIRouter(tags=["health"])

_started_at = time.monotonic()


@router.get("/health/live")
async def liveness() -> Dict[str, Any]:
    return {"status": "alive"}


@router.get("/health")
async def health():
    """Database and Redis connectivity. Redis is degraded, not fatal."""
    database = await database_health_check()
    redis_status = await redis_health_check()

    overall = "healthy"
    if redis_status.get("status") != "healthy":
        overall = "degraded"
    if database.get("status") != "healthy":
        overall = "unhealthy"

    body = {
        "status": overall,
        "service": "booking-leads",
        "environment": settings.environment,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "checks": {
            "database": database,
            "redis": redis_status,
        },
    }
    code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == "unhealthy" else status.HTTP_200_OK
    return JSONResponse(status_code=code, content=body)

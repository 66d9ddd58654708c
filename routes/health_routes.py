"""
Health check endpoint.

GET /health — checks MongoDB and Redis connectivity and lists the delivery
providers wired for each channel.
Rules:
- MongoDB failure → "unhealthy" (503); verification cannot work without the store.
- MongoDB absent (OTP_STORAGE_MODE=memory) → reported as "memory", not a failure.
- Redis failure or absence → "degraded" (200); cooldowns fall back to process memory.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthChecks, HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    overall = "healthy"

    db = getattr(request.app.state, "db", None)
    if db is None:
        mongodb = "memory"
    else:
        try:
            await db.client.admin.command("ping")
            mongodb = "ok"
        except Exception as e:
            log.warning("health_mongodb_failed", error=str(e))
            mongodb = "error"
            overall = "unhealthy"

    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        redis_status = "not_configured"
        if overall == "healthy":
            overall = "degraded"
    else:
        try:
            await redis.ping()
            redis_status = "ok"
        except Exception as e:
            log.warning("health_redis_failed", error=str(e))
            redis_status = "error"
            if overall == "healthy":
                overall = "degraded"

    dispatcher = getattr(request.app.state, "dispatcher", None)
    body = HealthResponse(
        status=overall,
        checks=HealthChecks(mongodb=mongodb, redis=redis_status),
        providers=dispatcher.provider_names() if dispatcher is not None else {},
    )
    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(status_code=status_code, content=body.model_dump())

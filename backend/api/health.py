"""
Grant Portal Health Check Endpoints
Liveness and readiness checks for load balancers and monitoring.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from backend.core.config import settings
from backend.database import check_db_connection

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    status: HealthStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: HealthStatus
    timestamp: str
    components: dict[str, Any]
    version: str


class LivenessResponse(BaseModel):
    status: str


async def check_database() -> ComponentHealth:
    start_time = time.perf_counter()
    result = await check_db_connection()
    latency = round((time.perf_counter() - start_time) * 1000, 2)

    if result["status"] != "healthy":
        logger.error(f"Database health check failed: {result.get('error')}")
        return ComponentHealth(status=HealthStatus.UNHEALTHY, latency_ms=latency, message=result.get("error"))
    return ComponentHealth(status=HealthStatus.HEALTHY, latency_ms=latency, message="Database connection successful")


async def check_redis() -> ComponentHealth:
    """
    Redis backs rate limiting and the Celery broker. Losing it degrades the
    API (rate limiting falls back to memory, notifications queue up) but does
    not take it down.
    """
    start_time = time.perf_counter()
    try:
        redis_client = aioredis.from_url(
            settings.redis_url,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            await redis_client.ping()
        finally:
            await redis_client.aclose()
    except Exception as e:
        latency = round((time.perf_counter() - start_time) * 1000, 2)
        logger.warning(f"Redis health check failed: {e}")
        return ComponentHealth(status=HealthStatus.DEGRADED, latency_ms=latency, message=str(e))

    latency = round((time.perf_counter() - start_time) * 1000, 2)
    return ComponentHealth(status=HealthStatus.HEALTHY, latency_ms=latency, message="Redis connection successful")


def determine_overall_status(components: dict[str, ComponentHealth]) -> HealthStatus:
    """The database is critical; anything else only degrades."""
    if components["database"].status == HealthStatus.UNHEALTHY:
        return HealthStatus.UNHEALTHY
    if any(c.status != HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=LivenessResponse, summary="Basic liveness check")
async def basic_health() -> LivenessResponse:
    return LivenessResponse(status="ok")


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness check",
    responses={503: {"description": "Database unavailable"}},
)
async def readiness_check(response: Response) -> HealthResponse:
    db_check, redis_check = await asyncio.gather(check_database(), check_redis())
    components = {"database": db_check, "redis": redis_check}

    overall_status = determine_overall_status(components)
    if overall_status == HealthStatus.UNHEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        components={name: c.model_dump(mode="json") for name, c in components.items()},
        version=settings.app_version,
    )

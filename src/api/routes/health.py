# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoints.

This module provides health, liveness and readiness endpoints for the API.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.core.config import get_settings
from src.infrastructure.database.connection import check_database_connection

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"

# Track server start time for uptime calculation
_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""
    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")
    message: str | None = Field(None, description="Additional status message")


class ComponentsHealth(BaseModel):
    """All components health status."""
    database: ComponentHealth | None = None
    redis: ComponentHealth | None = None
    broadcaster: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    timestamp: datetime = Field(description="Current server timestamp")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    components: ComponentsHealth = Field(default_factory=ComponentsHealth)


class ReadinessResponse(BaseModel):
    """Readiness check response model."""
    ready: bool = Field(description="Whether the service is ready")
    checks: dict[str, Any] = Field(description="Individual check results")


async def check_database() -> ComponentHealth:
    """Check database connection."""
    start = time.time()
    healthy = await check_database_connection()
    latency = (time.time() - start) * 1000

    if healthy:
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    logger.error("Database health check failed")
    return ComponentHealth(status="unhealthy", message="Database unreachable")


async def check_redis(request: Request) -> ComponentHealth | None:
    """Check Redis connection, if Redis fan-out is enabled."""
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return None

    start = time.time()
    if await redis.ping():
        latency = (time.time() - start) * 1000
        return ComponentHealth(status="healthy", latency_ms=round(latency, 2))
    logger.error("Redis health check failed")
    return ComponentHealth(status="unhealthy", message="Redis unreachable")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check if the API is healthy with component details.

    Returns:
        HealthResponse with detailed status.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    db_health = await check_database()
    redis_health = await check_redis(request)
    broadcaster = getattr(request.app.state, "broadcaster", None)

    statuses = [db_health.status]
    if redis_health is not None:
        statuses.append(redis_health.status)

    if all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    elif db_health.status != "healthy":
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=now,
        version=API_VERSION,
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        components=ComponentsHealth(
            database=db_health,
            redis=redis_health,
            broadcaster=broadcaster.get_stats() if broadcaster is not None else None,
        ),
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Report that the process is up."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Check if the API is ready to accept traffic.

    Returns:
        ReadinessResponse with individual check results.
    """
    checks: dict[str, Any] = {}
    all_ready = True

    db_health = await check_database()
    checks["database"] = {"status": db_health.status, "latency_ms": db_health.latency_ms}
    if db_health.status != "healthy":
        all_ready = False

    redis_health = await check_redis(request)
    if redis_health is not None:
        checks["redis"] = {"status": redis_health.status, "latency_ms": redis_health.latency_ms}
        if redis_health.status != "healthy":
            all_ready = False

    checks["broadcaster"] = getattr(request.app.state, "broadcaster", None) is not None
    if not checks["broadcaster"]:
        all_ready = False

    return ReadinessResponse(ready=all_ready, checks=checks)

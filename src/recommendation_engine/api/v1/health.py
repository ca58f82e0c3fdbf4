"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text

from recommendation_engine import __version__
from recommendation_engine.api.dependencies import get_cache, get_metrics
from recommendation_engine.config import get_settings
from recommendation_engine.infrastructure.database.connection import get_db_session
from recommendation_engine.infrastructure.redis import CacheService
from shared.metrics import MetricsSink

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    This endpoint is used by load balancers and orchestrators
    to determine if the service is running.
    """
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "postgres": "configured",
            "redis": "configured",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(cache: CacheService = Depends(get_cache)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies that the storefront database answers. Redis is reported but does
    not gate readiness: the service degrades to uncached reads without it.
    """
    checks: dict[str, bool] = {}

    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        checks["postgres"] = True
    except Exception as e:
        logger.warning("Readiness check failed", dependency="postgres", error=str(e))
        checks["postgres"] = False

    checks["redis"] = await cache.health_check()

    return ReadinessResponse(
        ready=checks["postgres"],
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Simple endpoint that returns 200 if the service is running.
    This endpoint is used by Kubernetes liveness probes.
    """
    return {"status": "alive"}


@router.get("/health/metrics")
async def metrics_snapshot(metrics: MetricsSink = Depends(get_metrics)) -> dict[str, Any]:
    """Counters and latency percentiles collected by this process."""
    snapshot = getattr(metrics, "snapshot", None)
    return snapshot() if snapshot else {"counters": {}, "latencies": {}}

"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems and the
Prometheus scrape endpoint.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from rollup_engine.config import get_settings
from rollup_engine.database.connection import check_database_health
from rollup_engine.raw import SqlRawStore

settings = get_settings()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Rollup engine and snapshot freshness
    - Database connectivity (SQL raw store only)
    - Redis connectivity (snapshot persistence only)
    """
    checks: Dict[str, Any] = {}
    overall_status = "healthy"

    engine = getattr(request.app.state, "rollups", None)
    if engine is None:
        checks["rollups"] = {"status": "unhealthy", "error": "engine not built"}
        overall_status = "unhealthy"
    else:
        names = engine.store.names()
        initialized = [n for n in names if engine.store.is_initialized(n)]
        checks["rollups"] = {
            "status": "healthy" if len(initialized) == len(names) else "degraded",
            "registered": len(names),
            "initialized": len(initialized),
        }
        if len(initialized) < len(names):
            overall_status = "degraded"

        if isinstance(engine.accessor, SqlRawStore):
            db_health = await check_database_health()
            checks["database"] = db_health
            if db_health.get("status") != "healthy":
                overall_status = "unhealthy"

    if settings.rollups.persist_snapshots:
        try:
            from rollup_engine.serving.cache import get_redis
            await get_redis().ping()
            checks["redis"] = {"status": "healthy"}
        except Exception as e:
            checks["redis"] = {"status": "unhealthy", "error": str(e)}
            if overall_status == "healthy":
                overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Uninitialized rollups do not block readiness; they read as empty.
    """
    engine = getattr(request.app.state, "rollups", None)
    if engine is None:
        response.status_code = 503
        return {"status": "not_ready", "reason": "engine_unavailable"}

    if isinstance(engine.accessor, SqlRawStore):
        db_health = await check_database_health()
        if db_health.get("status") != "healthy":
            response.status_code = 503
            return {"status": "not_ready", "reason": "database_unavailable"}

    return {"status": "ready"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics, including per-rollup refresh counters"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

"""
FastAPI Application Factory

Creates the rollup API. The lifespan builds the rollup engine over the SQL
raw store unless an engine is passed in, restores persisted snapshots and
optionally starts a first refresh in the background.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from rollup_engine.config import get_settings
from rollup_engine.config.logging import configure_logging
from rollup_engine.database.connection import close_database, init_database
from rollup_engine.raw import SqlRawStore
from rollup_engine.rollups import RollupEngine, build_engine
from rollup_engine.serving.cache import SnapshotCache, close_redis, init_redis
from .middleware import RequestLoggingMiddleware
from .routes import health_router, rollups_router

settings = get_settings()
logger = structlog.get_logger(__name__)


async def _build_default_engine() -> RollupEngine:
    try:
        await init_database()
    except Exception as e:
        logger.warning("Database init failed, refreshes will fail until it is reachable", error=str(e))

    persistence = None
    if settings.rollups.persist_snapshots:
        try:
            await init_redis()
            persistence = SnapshotCache()
        except Exception as e:
            logger.warning("Redis init failed, snapshots will not be persisted", error=str(e))

    return build_engine(SqlRawStore(), persistence=persistence)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting rollup API", environment=settings.app_env)

    owns_engine = app.state.rollups is None
    if owns_engine:
        app.state.rollups = await _build_default_engine()
    engine: RollupEngine = app.state.rollups

    if settings.rollups.restore_on_startup:
        await engine.coordinator.restore()

    refresh_task: Optional[asyncio.Task] = None
    if settings.rollups.refresh_on_startup:
        refresh_task = asyncio.create_task(engine.coordinator.refresh_all())

    yield

    logger.info("Shutting down...")
    if refresh_task is not None and not refresh_task.done():
        refresh_task.cancel()
        with suppress(asyncio.CancelledError):
            await refresh_task
    if owns_engine:
        await close_database()
        await close_redis()


def create_app(engine: Optional[RollupEngine] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        engine: Prebuilt rollup engine; built at startup when omitted

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="E-Commerce Rollup API",
        description="Precomputed sales, product, category and engagement rollups",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.rollups = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(rollups_router, prefix="/api/v1", tags=["Rollups"])

    return app

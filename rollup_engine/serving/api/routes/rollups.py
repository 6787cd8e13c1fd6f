"""
Rollup API Endpoints

Read access to the current rollup snapshots and the on-demand refresh
operation. Rows always come from the snapshot store, never from raw data.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from rollup_engine.exceptions import UnknownRollupError
from rollup_engine.rollups import (
    RefreshResult,
    RefreshStatus,
    RollupEngine,
    RollupSummary,
)
from ..dependencies import get_engine

router = APIRouter()
logger = structlog.get_logger(__name__)

REFRESH_STATUS_CODES = {
    RefreshStatus.SUCCESS: 200,
    RefreshStatus.IN_PROGRESS: 409,
    RefreshStatus.CANCELLED: 504,
    RefreshStatus.FAILED: 500,
}


class RollupSummaryResponse(BaseModel):
    """Freshness of one rollup"""
    rollup: str
    initialized: bool
    row_count: int
    source_row_count: Optional[int] = None
    computed_at: Optional[datetime] = None
    staleness_seconds: Optional[float] = None
    duration_ms: Optional[float] = None

    @classmethod
    def from_summary(cls, summary: RollupSummary) -> "RollupSummaryResponse":
        return cls(
            rollup=summary.rollup,
            initialized=summary.initialized,
            row_count=summary.row_count,
            source_row_count=summary.source_row_count,
            computed_at=summary.computed_at,
            staleness_seconds=summary.staleness.total_seconds() if summary.staleness is not None else None,
            duration_ms=summary.duration_ms,
        )


class RollupPageResponse(BaseModel):
    """Page of rollup rows"""
    rollup: str
    initialized: bool
    computed_at: Optional[datetime] = None
    total: int
    limit: int
    offset: int
    rows: List[Dict[str, Any]]


class RefreshResultResponse(BaseModel):
    """Outcome of one rollup refresh"""
    rollup: str
    status: RefreshStatus
    elapsed_ms: float
    row_count: Optional[int] = None
    source_row_count: Optional[int] = None
    computed_at: Optional[datetime] = None
    error: Optional[Dict[str, Any]] = None
    persisted: Optional[bool] = None

    @classmethod
    def from_result(cls, result: RefreshResult) -> "RefreshResultResponse":
        return cls(
            rollup=result.rollup,
            status=result.status,
            elapsed_ms=result.elapsed_ms,
            row_count=result.row_count,
            source_row_count=result.source_row_count,
            computed_at=result.computed_at,
            error=result.error.to_dict() if result.error else None,
            persisted=result.persisted,
        )


class RefreshAllResponse(BaseModel):
    """Outcome of refreshing several rollups"""
    succeeded: int
    failed: int
    results: List[RefreshResultResponse]


class DashboardResponse(BaseModel):
    """Overview of the latest rollup rows"""
    total_revenue: float
    total_orders: int
    daily_sales: List[Dict[str, Any]]
    top_products: List[Dict[str, Any]]
    categories: List[Dict[str, Any]]
    top_users: List[Dict[str, Any]]
    row_counts: Dict[str, int]
    computed_at: Dict[str, Optional[datetime]]


def _not_found(error: UnknownRollupError) -> HTTPException:
    return HTTPException(status_code=404, detail=error.to_dict())


@router.get("/rollups", response_model=List[RollupSummaryResponse])
async def list_rollups(engine: RollupEngine = Depends(get_engine)) -> List[RollupSummaryResponse]:
    """Freshness of every registered rollup"""
    return [RollupSummaryResponse.from_summary(s) for s in engine.query.summaries()]


@router.post("/rollups/refresh", response_model=RefreshAllResponse)
async def refresh_all_rollups(
    timeout: Optional[float] = Query(None, gt=0, description="Per-rollup timeout in seconds"),
    engine: RollupEngine = Depends(get_engine),
) -> RefreshAllResponse:
    """Refresh every rollup; each one reports its own outcome"""
    results = await engine.coordinator.refresh_all(timeout=timeout)
    return RefreshAllResponse(
        succeeded=sum(1 for r in results if r.ok),
        failed=sum(1 for r in results if not r.ok),
        results=[RefreshResultResponse.from_result(r) for r in results],
    )


@router.get("/rollups/{name}", response_model=RollupPageResponse)
async def get_rollup(
    name: str,
    limit: Optional[int] = Query(None, ge=0, description="Page size"),
    offset: int = Query(0, ge=0, description="Rows to skip"),
    engine: RollupEngine = Depends(get_engine),
) -> RollupPageResponse:
    """Page of a rollup's rows in snapshot order"""
    try:
        page = engine.query.list(name, limit=limit, offset=offset)
    except UnknownRollupError as e:
        raise _not_found(e)

    return RollupPageResponse(
        rollup=page.rollup,
        initialized=page.initialized,
        computed_at=page.computed_at,
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        rows=[row.model_dump() for row in page.rows],
    )


@router.get("/rollups/{name}/summary", response_model=RollupSummaryResponse)
async def get_rollup_summary(
    name: str,
    engine: RollupEngine = Depends(get_engine),
) -> RollupSummaryResponse:
    try:
        return RollupSummaryResponse.from_summary(engine.query.summary(name))
    except UnknownRollupError as e:
        raise _not_found(e)


@router.post("/rollups/{name}/refresh", response_model=RefreshResultResponse)
async def refresh_rollup(
    name: str,
    response: Response,
    timeout: Optional[float] = Query(None, gt=0, description="Timeout in seconds"),
    engine: RollupEngine = Depends(get_engine),
) -> RefreshResultResponse:
    """
    Refresh one rollup.

    Returns 200 on success, 409 if a refresh of the rollup is already
    running, 504 if it timed out and 500 if it failed.
    """
    try:
        result = await engine.coordinator.refresh_one(name, timeout=timeout)
    except UnknownRollupError as e:
        raise _not_found(e)

    response.status_code = REFRESH_STATUS_CODES[result.status]
    return RefreshResultResponse.from_result(result)


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    days: Optional[int] = Query(None, ge=0, description="Daily sales rows"),
    top: Optional[int] = Query(None, ge=0, description="Products and users"),
    engine: RollupEngine = Depends(get_engine),
) -> DashboardResponse:
    dashboard = engine.query.dashboard(days=days, top=top)
    return DashboardResponse(
        total_revenue=dashboard.total_revenue,
        total_orders=dashboard.total_orders,
        daily_sales=[row.model_dump() for row in dashboard.daily_sales],
        top_products=[row.model_dump() for row in dashboard.top_products],
        categories=[row.model_dump() for row in dashboard.categories],
        top_users=[row.model_dump() for row in dashboard.top_users],
        row_counts=dashboard.row_counts,
        computed_at=dashboard.computed_at,
    )

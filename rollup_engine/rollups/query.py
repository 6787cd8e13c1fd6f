"""
Query Interface

Read-only access to the current snapshots. Nothing here touches raw data or
triggers a refresh; a rollup that was never refreshed reads as empty with
`initialized=False`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from rollup_engine.config import get_settings
from .computer import Clock, utc_now
from .rows import RollupRow
from .snapshot import SnapshotStore

settings = get_settings()


@dataclass
class RollupPage:
    """One page of a rollup's rows in snapshot order"""
    rollup: str
    rows: List[RollupRow]
    total: int
    limit: int
    offset: int
    computed_at: Optional[datetime]
    initialized: bool


@dataclass
class RollupSummary:
    """Freshness and size of a rollup's current snapshot"""
    rollup: str
    initialized: bool
    row_count: int = 0
    source_row_count: Optional[int] = None
    computed_at: Optional[datetime] = None
    staleness: Optional[timedelta] = None
    duration_ms: Optional[float] = None


@dataclass
class Dashboard:
    """Overview combining the latest rows of every rollup"""
    daily_sales: List[RollupRow] = field(default_factory=list)
    top_products: List[RollupRow] = field(default_factory=list)
    categories: List[RollupRow] = field(default_factory=list)
    top_users: List[RollupRow] = field(default_factory=list)
    total_revenue: float = 0.0
    total_orders: int = 0
    row_counts: Dict[str, int] = field(default_factory=dict)
    computed_at: Dict[str, Optional[datetime]] = field(default_factory=dict)


class RollupQuery:
    """
    Reads snapshots for the serving layer.

    Example:
        query = RollupQuery(store)
        page = query.list("top_products", limit=10)
        summary = query.summary("top_products")
    """

    def __init__(
        self,
        store: SnapshotStore,
        clock: Clock = utc_now,
        max_page_size: Optional[int] = None,
    ):
        self._store = store
        self._clock = clock
        self._max_page_size = max_page_size or settings.rollups.max_page_size

    def names(self) -> List[str]:
        return self._store.names()

    def list(self, name: str, limit: Optional[int] = None, offset: int = 0) -> RollupPage:
        """
        Page through a rollup's rows.

        Args:
            name: Rollup name
            limit: Page size, clamped to the configured maximum
            offset: Rows to skip

        Raises:
            UnknownRollupError: If the rollup is not registered
            ValueError: If limit or offset is negative
        """
        if limit is None:
            limit = settings.rollups.default_page_size
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must not be negative")
        limit = min(limit, self._max_page_size)

        snapshot = self._store.get_current(name)
        if snapshot is None:
            return RollupPage(
                rollup=name,
                rows=[],
                total=0,
                limit=limit,
                offset=offset,
                computed_at=None,
                initialized=False,
            )

        return RollupPage(
            rollup=name,
            rows=list(snapshot.rows[offset:offset + limit]),
            total=snapshot.row_count,
            limit=limit,
            offset=offset,
            computed_at=snapshot.computed_at,
            initialized=True,
        )

    def summary(self, name: str) -> RollupSummary:
        snapshot = self._store.get_current(name)
        if snapshot is None:
            return RollupSummary(rollup=name, initialized=False)

        return RollupSummary(
            rollup=name,
            initialized=True,
            row_count=snapshot.row_count,
            source_row_count=snapshot.source_row_count,
            computed_at=snapshot.computed_at,
            staleness=self._clock() - snapshot.computed_at,
            duration_ms=snapshot.duration_ms,
        )

    def summaries(self) -> List[RollupSummary]:
        return [self.summary(name) for name in self._store.names()]

    def dashboard(self, days: Optional[int] = None, top: Optional[int] = None) -> Dashboard:
        """
        Latest daily sales, best products and users, and all categories.

        Revenue and order totals cover the listed days only. Rollups that
        are disabled or not yet refreshed contribute no rows.
        """
        days = settings.rollups.dashboard_days if days is None else days
        top = settings.rollups.dashboard_top_n if top is None else top
        if days < 0 or top < 0:
            raise ValueError("days and top must not be negative")

        snapshots = {name: self._store.get_current(name) for name in self._store.names()}

        def rows(name: str, limit: Optional[int] = None) -> List[RollupRow]:
            snapshot = snapshots.get(name)
            if snapshot is None:
                return []
            return list(snapshot.rows if limit is None else snapshot.rows[:limit])

        daily_sales = rows("daily_sales", days)
        return Dashboard(
            daily_sales=daily_sales,
            top_products=rows("top_products", top),
            categories=rows("category_revenue"),
            top_users=rows("user_engagement", top),
            total_revenue=sum((row.total_revenue for row in daily_sales), 0.0),
            total_orders=sum(row.total_orders for row in daily_sales),
            row_counts={
                name: snapshot.row_count if snapshot else 0
                for name, snapshot in snapshots.items()
            },
            computed_at={
                name: snapshot.computed_at if snapshot else None
                for name, snapshot in snapshots.items()
            },
        )

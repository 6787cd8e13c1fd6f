"""
Rollup Engine Core
"""
from .computer import RollupComputer, utc_now
from .coordinator import RefreshCoordinator, RefreshResult, RefreshStatus
from .definitions import (
    DEFINITIONS,
    AggregateDefinition,
    CategoryRevenue,
    DailySales,
    SortKey,
    TopProducts,
    UserEngagement,
    get_definitions,
)
from .engine import RollupEngine, build_engine
from .query import Dashboard, RollupPage, RollupQuery, RollupSummary
from .rows import (
    CategoryRevenueRow,
    DailySalesRow,
    RollupRow,
    TopProductRow,
    UserEngagementRow,
)
from .snapshot import Snapshot, SnapshotPersistence, SnapshotStore

__all__ = [
    "RollupComputer",
    "utc_now",
    "RefreshCoordinator",
    "RefreshResult",
    "RefreshStatus",
    "DEFINITIONS",
    "AggregateDefinition",
    "CategoryRevenue",
    "DailySales",
    "SortKey",
    "TopProducts",
    "UserEngagement",
    "get_definitions",
    "RollupEngine",
    "build_engine",
    "Dashboard",
    "RollupPage",
    "RollupQuery",
    "RollupSummary",
    "CategoryRevenueRow",
    "DailySalesRow",
    "RollupRow",
    "TopProductRow",
    "UserEngagementRow",
    "Snapshot",
    "SnapshotPersistence",
    "SnapshotStore",
]

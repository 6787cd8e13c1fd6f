"""
Rollup Engine Assembly

Wires definitions, snapshot store, computer, coordinator and query
interface around one raw data accessor.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import structlog

from rollup_engine.config import get_settings
from rollup_engine.raw import RawDataAccessor
from .computer import Clock, RollupComputer, utc_now
from .coordinator import RefreshCoordinator
from .definitions import AggregateDefinition, get_definitions
from .query import RollupQuery
from .snapshot import SnapshotPersistence, SnapshotStore

logger = structlog.get_logger(__name__)
settings = get_settings()


@dataclass
class RollupEngine:
    """All engine components sharing one store"""
    definitions: Dict[str, AggregateDefinition]
    accessor: RawDataAccessor
    store: SnapshotStore
    computer: RollupComputer
    coordinator: RefreshCoordinator
    query: RollupQuery


def build_engine(
    accessor: RawDataAccessor,
    names: Optional[Iterable[str]] = None,
    persistence: Optional[SnapshotPersistence] = None,
    clock: Clock = utc_now,
    timeout: Optional[float] = None,
) -> RollupEngine:
    """
    Build a rollup engine.

    Args:
        accessor: Raw data source
        names: Rollups to register, defaults to the configured ones
        persistence: Optional durable snapshot backend
        clock: UTC clock used for computed_at and staleness
        timeout: Refresh timeout override in seconds
    """
    definitions = get_definitions(settings.rollups.enabled if names is None else names)
    store = SnapshotStore(definitions)
    computer = RollupComputer(clock=clock)
    coordinator = RefreshCoordinator(
        definitions,
        store,
        accessor,
        computer=computer,
        persistence=persistence,
        timeout=timeout,
    )

    logger.info(
        "Rollup engine built",
        rollups=list(definitions),
        accessor=type(accessor).__name__,
        persistence=type(persistence).__name__ if persistence else None,
    )
    return RollupEngine(
        definitions=definitions,
        accessor=accessor,
        store=store,
        computer=computer,
        coordinator=coordinator,
        query=RollupQuery(store, clock=clock),
    )

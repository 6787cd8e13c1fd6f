"""
Refresh Coordinator

Entry point for recomputing rollups, whether triggered by the scheduler or
on demand. At most one refresh per rollup is in flight; a second request
for the same rollup is rejected and reported rather than queued. Every
refresh ends in exactly one RefreshResult.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import structlog
from prometheus_client import Counter, Gauge, Histogram

from rollup_engine.config import get_settings
from rollup_engine.exceptions import (
    RefreshCancelledError,
    RefreshInProgressError,
    RollupError,
    UnknownRollupError,
)
from rollup_engine.raw import RawDataAccessor
from .computer import RollupComputer
from .definitions import AggregateDefinition
from .snapshot import SnapshotPersistence, SnapshotStore

logger = structlog.get_logger(__name__)
settings = get_settings()


# =============================================================================
# METRICS
# =============================================================================

ROLLUP_REFRESHES = Counter(
    "ecommerce_rollup_refreshes_total",
    "Refresh requests by outcome",
    ["rollup", "status"],
)

ROLLUP_REFRESH_TIME = Histogram(
    "ecommerce_rollup_refresh_seconds",
    "Time spent computing and swapping in a snapshot",
    ["rollup"],
)

ROLLUP_ROWS = Gauge(
    "ecommerce_rollup_rows",
    "Rows in the current snapshot",
    ["rollup"],
)

ROLLUP_LAST_SUCCESS = Gauge(
    "ecommerce_rollup_last_success_timestamp_seconds",
    "computed_at of the current snapshot",
    ["rollup"],
)


class RefreshStatus(str, Enum):
    """Outcome of a refresh request"""
    SUCCESS = "success"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    CANCELLED = "cancelled"


@dataclass
class RefreshResult:
    """Per-rollup refresh report"""
    rollup: str
    status: RefreshStatus
    elapsed_ms: float = 0.0
    row_count: Optional[int] = None
    source_row_count: Optional[int] = None
    computed_at: Optional[datetime] = None
    error: Optional[RollupError] = None
    persisted: Optional[bool] = None

    @property
    def ok(self) -> bool:
        return self.status == RefreshStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rollup": self.rollup,
            "status": self.status.value,
            "elapsed_ms": self.elapsed_ms,
            "row_count": self.row_count,
            "source_row_count": self.source_row_count,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
            "error": self.error.to_dict() if self.error else None,
            "persisted": self.persisted,
        }


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


def _observe(result: RefreshResult) -> None:
    ROLLUP_REFRESHES.labels(rollup=result.rollup, status=result.status.value).inc()
    if result.ok:
        ROLLUP_REFRESH_TIME.labels(rollup=result.rollup).observe(result.elapsed_ms / 1000)
        ROLLUP_ROWS.labels(rollup=result.rollup).set(result.row_count)
        ROLLUP_LAST_SUCCESS.labels(rollup=result.rollup).set(result.computed_at.timestamp())


class RefreshCoordinator:
    """
    Serializes refreshes per rollup and swaps finished snapshots in.

    The in-flight registry is guarded by a thread lock so the one-refresh
    rule also holds when refreshes are started from several threads or
    event loops.

    Example:
        coordinator = RefreshCoordinator(get_definitions(), store, accessor)
        result = await coordinator.refresh_one("daily_sales")
        results = await coordinator.refresh_all()
    """

    def __init__(
        self,
        definitions: Dict[str, AggregateDefinition],
        store: SnapshotStore,
        accessor: RawDataAccessor,
        computer: Optional[RollupComputer] = None,
        persistence: Optional[SnapshotPersistence] = None,
        timeout: Optional[float] = None,
    ):
        self._definitions = dict(definitions)
        self._store = store
        self._accessor = accessor
        self._computer = computer or RollupComputer()
        self._persistence = persistence
        self._timeout = timeout if timeout is not None else settings.rollups.refresh_timeout_seconds

        self._in_flight_lock = threading.Lock()
        self._in_flight: set = set()

        for name in self._definitions:
            self._store.register(name)

    def names(self) -> List[str]:
        """Registered rollups in refresh order"""
        return list(self._definitions)

    def _definition(self, name: str) -> AggregateDefinition:
        try:
            return self._definitions[name]
        except KeyError:
            raise UnknownRollupError(name) from None

    def _acquire(self, name: str) -> bool:
        with self._in_flight_lock:
            if name in self._in_flight:
                return False
            self._in_flight.add(name)
            return True

    def _release(self, name: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(name)

    def in_progress(self, name: str) -> bool:
        self._definition(name)
        with self._in_flight_lock:
            return name in self._in_flight

    async def refresh_one(self, name: str, timeout: Optional[float] = None) -> RefreshResult:
        """
        Recompute one rollup and swap the result in.

        Failures, rejections and timeouts are reported in the result, never
        raised; the current snapshot is only replaced on success.

        Args:
            name: Rollup name
            timeout: Seconds before the computation is cancelled, defaults
                to the configured refresh timeout

        Raises:
            UnknownRollupError: If the rollup is not registered
        """
        definition = self._definition(name)

        if not self._acquire(name):
            error = RefreshInProgressError(name)
            logger.info("Refresh rejected", rollup=name, reason=error.code)
            result = RefreshResult(rollup=name, status=RefreshStatus.IN_PROGRESS, error=error)
        else:
            try:
                result = await self._refresh(name, definition, timeout)
            finally:
                self._release(name)

        _observe(result)
        return result

    async def _refresh(
        self,
        name: str,
        definition: AggregateDefinition,
        timeout: Optional[float],
    ) -> RefreshResult:
        timeout = self._timeout if timeout is None else timeout
        started = time.perf_counter()
        logger.info("Refreshing rollup", rollup=name)
        try:
            snapshot = await asyncio.wait_for(
                self._computer.compute(definition, self._accessor),
                timeout,
            )
        except asyncio.TimeoutError:
            error = RefreshCancelledError(name, timeout)
            logger.warning("Rollup refresh timed out", rollup=name, timeout_seconds=timeout)
            return RefreshResult(
                rollup=name,
                status=RefreshStatus.CANCELLED,
                elapsed_ms=_elapsed_ms(started),
                error=error,
            )
        except RollupError as e:
            logger.error("Rollup refresh failed", rollup=name, code=e.code, error=e.message)
            return RefreshResult(
                rollup=name,
                status=RefreshStatus.FAILED,
                elapsed_ms=_elapsed_ms(started),
                error=e,
            )
        except Exception as e:
            logger.exception("Rollup refresh failed unexpectedly", rollup=name)
            return RefreshResult(
                rollup=name,
                status=RefreshStatus.FAILED,
                elapsed_ms=_elapsed_ms(started),
                error=RollupError(
                    name,
                    f"Unexpected error: {e}",
                    details={"error_type": type(e).__name__},
                ),
            )

        generation = self._store.swap_in(name, snapshot)
        persisted = await self._persist(snapshot)

        result = RefreshResult(
            rollup=name,
            status=RefreshStatus.SUCCESS,
            elapsed_ms=_elapsed_ms(started),
            row_count=snapshot.row_count,
            source_row_count=snapshot.source_row_count,
            computed_at=snapshot.computed_at,
            persisted=persisted,
        )
        logger.info(
            "Rollup refreshed",
            rollup=name,
            generation=generation,
            row_count=result.row_count,
            elapsed_ms=result.elapsed_ms,
        )
        return result

    async def refresh_all(
        self,
        names: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ) -> List[RefreshResult]:
        """
        Refresh several rollups concurrently.

        One rollup failing never prevents the others from refreshing.
        Results are returned in registry order.

        Raises:
            UnknownRollupError: If any requested rollup is not registered
        """
        if names is None:
            targets = self.names()
        else:
            requested = set(names)
            for name in requested:
                self._definition(name)
            targets = [name for name in self._definitions if name in requested]

        logger.info("Starting rollup refresh", rollups=targets)
        started = time.perf_counter()

        outcomes = await asyncio.gather(
            *(self.refresh_one(name, timeout) for name in targets),
            return_exceptions=True,
        )

        results: List[RefreshResult] = []
        for name, outcome in zip(targets, outcomes):
            if isinstance(outcome, RefreshResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error("Rollup refresh raised", rollup=name, error=str(outcome))
                results.append(
                    RefreshResult(
                        rollup=name,
                        status=RefreshStatus.FAILED,
                        error=RollupError(name, str(outcome)),
                    )
                )
            else:
                raise outcome

        logger.info(
            "Rollup refresh complete",
            elapsed_ms=_elapsed_ms(started),
            succeeded=sum(1 for r in results if r.ok),
            failed=sum(1 for r in results if r.status == RefreshStatus.FAILED),
            skipped=sum(1 for r in results if r.status == RefreshStatus.IN_PROGRESS),
            cancelled=sum(1 for r in results if r.status == RefreshStatus.CANCELLED),
        )
        return results

    async def _persist(self, snapshot) -> Optional[bool]:
        if self._persistence is None:
            return None
        try:
            await self._persistence.save(snapshot)
        except Exception as e:
            logger.warning("Failed to persist snapshot", rollup=snapshot.name, error=str(e))
            return False
        return True

    async def restore(self) -> List[str]:
        """
        Load persisted snapshots into rollups that have none yet.

        Returns:
            Names of the restored rollups
        """
        if self._persistence is None:
            return []

        restored = []
        for name, definition in self._definitions.items():
            if self._store.is_initialized(name):
                continue
            try:
                snapshot = await self._persistence.load(name, definition.row_model)
                if snapshot is not None and self._store.initialize(name, snapshot):
                    restored.append(name)
            except Exception as e:
                logger.warning("Failed to restore snapshot", rollup=name, error=str(e))

        logger.info("Snapshots restored", rollups=restored)
        return restored

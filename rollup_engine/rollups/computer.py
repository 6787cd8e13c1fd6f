"""
Rollup Computer

Runs one aggregate definition against the raw data accessor and produces a
complete Snapshot. Reads happen inside a single accessor scan; the polars
aggregation runs in a worker thread so the event loop keeps serving reads
while a large rollup is recomputed.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Tuple

import structlog

from rollup_engine.exceptions import DefinitionError, RawAccessError, RollupError
from rollup_engine.quality import ValidationCheck, create_snapshot_validator
from rollup_engine.raw import RawDataAccessor, RawSource
from .definitions import AggregateDefinition
from .frames import RawFrames
from .rows import RollupRow
from .snapshot import Snapshot

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _describe(checks: List[ValidationCheck]) -> List[Dict]:
    return [
        {"check": c.name, "message": c.message, **(c.details or {})}
        for c in checks
    ]


class RollupComputer:
    """
    Computes snapshots from raw data.

    The computer holds no state between calls; identical raw data always
    produces identical rows in identical order.

    Example:
        computer = RollupComputer()
        snapshot = await computer.compute(DailySales(), store)
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    async def compute(
        self,
        definition: AggregateDefinition,
        accessor: RawDataAccessor,
    ) -> Snapshot:
        """
        Compute a fresh snapshot of one rollup.

        Raises:
            RawAccessError: If the raw data could not be read
            DefinitionError: If the raw data or the aggregate is malformed
        """
        started = time.perf_counter()
        computed_at = self._clock()

        records = await self._read(definition, accessor)
        rows, source_row_count = await asyncio.to_thread(
            self._aggregate, definition, records, computed_at
        )

        duration_ms = round((time.perf_counter() - started) * 1000, 3)
        logger.debug(
            "Rollup computed",
            rollup=definition.name,
            row_count=len(rows),
            source_row_count=source_row_count,
            duration_ms=duration_ms,
        )
        return Snapshot(
            name=definition.name,
            rows=rows,
            computed_at=computed_at,
            source_row_count=source_row_count,
            duration_ms=duration_ms,
        )

    async def _read(
        self,
        definition: AggregateDefinition,
        accessor: RawDataAccessor,
    ) -> Dict[RawSource, list]:
        try:
            async with accessor.scan() as reader:
                return {source: await reader.fetch(source) for source in definition.sources}
        except RollupError:
            raise
        except Exception as e:
            raise RawAccessError(
                definition.name,
                f"Failed to read raw data: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    def _aggregate(
        self,
        definition: AggregateDefinition,
        records: Dict[RawSource, list],
        computed_at: datetime,
    ) -> Tuple[Tuple[RollupRow, ...], int]:
        try:
            frames = RawFrames.from_records(records)

            for source, validator in definition.source_validators().items():
                result = validator.validate(frames[source])
                if result.errors:
                    raise DefinitionError(
                        definition.name,
                        f"Raw {source.value} failed {len(result.errors)} check(s)",
                        details={"source": source.value, "checks": _describe(result.errors)},
                    )

            df = definition.build(frames, computed_at)

            result = create_snapshot_validator(definition.name, definition.key).validate(df)
            if result.errors:
                raise DefinitionError(
                    definition.name,
                    f"Grouping key '{definition.key}' is not unique",
                    details={"checks": _describe(result.errors)},
                )

            rows = tuple(
                definition.row_model.model_validate(row)
                for row in df.iter_rows(named=True)
            )
        except RollupError:
            raise
        except Exception as e:
            raise DefinitionError(
                definition.name,
                f"Aggregation failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        return rows, frames.row_count

"""
Snapshot Store

Holds the current snapshot of every registered rollup. Readers take the
current reference without locking; a refresh replaces it wholesale under a
short per-name lock, so a reader sees either the old snapshot or the new
one and never a mix.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

import structlog

from rollup_engine.exceptions import UnknownRollupError
from .rows import RollupRow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Complete, immutable result of one rollup computation"""
    name: str
    rows: Tuple[RollupRow, ...]
    computed_at: datetime
    source_row_count: int
    duration_ms: float

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible form used for persistence"""
        return {
            "name": self.name,
            "computed_at": self.computed_at.isoformat(),
            "source_row_count": self.source_row_count,
            "duration_ms": self.duration_ms,
            "rows": [row.model_dump(mode="json") for row in self.rows],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], row_model: Type[RollupRow]) -> "Snapshot":
        return cls(
            name=payload["name"],
            rows=tuple(row_model.model_validate(row) for row in payload["rows"]),
            computed_at=datetime.fromisoformat(payload["computed_at"]),
            source_row_count=payload["source_row_count"],
            duration_ms=payload["duration_ms"],
        )


class SnapshotPersistence(ABC):
    """Durable copy of the current snapshots, restored at startup"""

    @abstractmethod
    async def save(self, snapshot: Snapshot) -> None:
        ...

    @abstractmethod
    async def load(self, name: str, row_model: Type[RollupRow]) -> Optional[Snapshot]:
        ...


class _Slot:
    __slots__ = ("lock", "current", "generation")

    def __init__(self):
        self.lock = threading.Lock()
        self.current: Optional[Snapshot] = None
        self.generation = 0


class SnapshotStore:
    """
    Current snapshot per rollup name.

    Example:
        store = SnapshotStore(["daily_sales"])
        store.swap_in("daily_sales", snapshot)
        current = store.get_current("daily_sales")
    """

    def __init__(self, names: Iterable[str] = ()):
        self._slots: Dict[str, _Slot] = {}
        for name in names:
            self.register(name)

    def register(self, name: str) -> None:
        if name not in self._slots:
            self._slots[name] = _Slot()

    def _slot(self, name: str) -> _Slot:
        try:
            return self._slots[name]
        except KeyError:
            raise UnknownRollupError(name) from None

    def names(self) -> List[str]:
        return list(self._slots)

    def get_current(self, name: str) -> Optional[Snapshot]:
        """Current snapshot, or None before the first successful refresh"""
        return self._slot(name).current

    def is_initialized(self, name: str) -> bool:
        return self._slot(name).current is not None

    def generation(self, name: str) -> int:
        """Number of swaps performed for the rollup"""
        return self._slot(name).generation

    def swap_in(self, name: str, snapshot: Snapshot) -> int:
        """
        Make `snapshot` the current snapshot of `name`.

        Returns:
            The new generation number
        """
        if snapshot.name != name:
            raise ValueError(f"Snapshot for '{snapshot.name}' cannot be swapped into '{name}'")

        slot = self._slot(name)
        with slot.lock:
            slot.current = snapshot
            slot.generation += 1
            generation = slot.generation

        logger.debug(
            "Snapshot swapped in",
            rollup=name,
            generation=generation,
            row_count=snapshot.row_count,
        )
        return generation

    def initialize(self, name: str, snapshot: Snapshot) -> bool:
        """Swap `snapshot` in only if the rollup has no snapshot yet"""
        if snapshot.name != name:
            raise ValueError(f"Snapshot for '{snapshot.name}' cannot be swapped into '{name}'")

        slot = self._slot(name)
        with slot.lock:
            if slot.current is not None:
                return False
            slot.current = snapshot
            slot.generation += 1
        return True

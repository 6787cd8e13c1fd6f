"""
Rollup Engine Exceptions

Every error carries the rollup it concerns and a machine-readable `code`
so refresh results and API responses can be branched on without parsing
messages. All exceptions inherit from RollupError.
"""

from typing import Any, Dict, Optional


class RollupError(Exception):
    """Base exception for all rollup engine errors."""

    code: str = "ROLLUP_ERROR"

    def __init__(
        self,
        rollup: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.rollup = rollup
        self.message = message
        self.details = details or {}
        super().__init__(f"{rollup}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "code": self.code,
            "rollup": self.rollup,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class UnknownRollupError(RollupError):
    """Raised when a rollup name is not registered with the engine."""

    code = "UNKNOWN_ROLLUP"

    def __init__(self, rollup: str):
        super().__init__(rollup, f"Rollup '{rollup}' is not registered")


class RawAccessError(RollupError):
    """Raised when the raw store cannot be read during a refresh.

    The refresh aborts and the prior snapshot stays current.
    """

    code = "RAW_ACCESS_ERROR"


class DefinitionError(RollupError):
    """Raised when an aggregate cannot be computed from the raw data.

    This exception is raised when:
    - Raw data has an unexpected shape (unknown enum value, missing key)
    - The aggregation itself fails
    - The result violates the rollup's key uniqueness
    """

    code = "DEFINITION_ERROR"


class RefreshInProgressError(RollupError):
    """Reported when a refresh is requested while one is already running."""

    code = "REFRESH_IN_PROGRESS"

    def __init__(self, rollup: str):
        super().__init__(rollup, "A refresh is already in progress")


class RefreshCancelledError(RollupError):
    """Reported when a refresh exceeded its timeout and was cancelled."""

    code = "REFRESH_CANCELLED"

    def __init__(self, rollup: str, timeout: float):
        super().__init__(
            rollup,
            f"Refresh cancelled after {timeout}s",
            details={"timeout_seconds": timeout},
        )

"""
Scheduling error taxonomy.

Grid building never aborts on a single bad row or zone name; only store
failures stop a build, and those surface as an explicit error state.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all scheduling engine errors."""
    pass


class DataFetchError(SchedulingError):
    """
    Raised when the row store cannot be read or written.

    Callers are expected to retry; the calendar shows a loading/error state
    instead of any partially computed grid.
    """

    def __init__(self, message: str, query: Optional[str] = None):
        super().__init__(message)
        self.query = query


class InvariantViolation(SchedulingError):
    """
    Raised when a stored row breaks a data-model invariant.

    Examples: a weekly rule whose start is not before its end, or an exception
    with an end time but no start time. Offending rows are skipped and logged.
    """

    def __init__(self, message: str, row_kind: str, row_id: Any = None):
        super().__init__(message)
        self.row_kind = row_kind
        self.row_id = row_id


class TimeZoneResolutionError(SchedulingError):
    """Raised when a time zone identifier cannot be resolved."""

    def __init__(self, time_zone: Optional[str]):
        super().__init__(f"Unknown time zone: {time_zone!r}")
        self.time_zone = time_zone

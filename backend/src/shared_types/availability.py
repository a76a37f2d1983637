"""
Shared types for availability computation.

These dataclasses flow through the expansion → overlay → merge pipeline.
They are immutable so a computed schedule can never be edited in place;
every refresh rebuilds them from rows.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, List, Tuple, Union

from utils.datetime_utils import to_utc_iso


@dataclass(frozen=True)
class RecurringOccurrence:
    """An interval produced by one weekly rule on one date."""
    rule_id: int

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (0, self.rule_id)

    def to_dict(self) -> dict[str, str | int]:
        return {"kind": "recurring", "rule_id": self.rule_id}


@dataclass(frozen=True)
class StandaloneOccurrence:
    """An interval added by a single-day exception with no rule behind it."""
    exception_id: int

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (1, self.exception_id)

    def to_dict(self) -> dict[str, str | int]:
        return {"kind": "standalone", "exception_id": self.exception_id}


Occurrence = Union[RecurringOccurrence, StandaloneOccurrence]


@dataclass(frozen=True)
class CandidateInterval:
    """
    One open window on one date, before merging.

    ``start``/``end`` are timezone-aware datetimes in the clinician's zone.
    ``source_exception_id`` is set when an exception rewrote or created the
    window.
    """
    date: date
    start: datetime
    end: datetime
    occurrence: Occurrence
    is_exception: bool = False
    source_exception_id: int | None = None

    @property
    def sort_key(self) -> Tuple[datetime, datetime, Tuple[int, int]]:
        return (self.start, self.end, self.occurrence.sort_key)


@dataclass(frozen=True)
class MergedTimeBlock:
    """
    Maximal contiguous open interval on one date.

    Derived on every render and never persisted. ``occurrences`` records every
    rule/exception that contributed so exception-modified time can be
    highlighted.
    """
    date: date
    start: datetime
    end: datetime
    occurrences: FrozenSet[Occurrence] = field(default_factory=frozenset)
    is_exception: bool = False

    def contains(self, instant: datetime) -> bool:
        """Check if ``instant`` falls inside [start, end)."""
        return self.start <= instant < self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Check if [start, end) shares any time with this block."""
        return self.start < end and start < self.end

    @property
    def rule_ids(self) -> List[int]:
        return sorted(o.rule_id for o in self.occurrences if isinstance(o, RecurringOccurrence))

    @property
    def exception_ids(self) -> List[int]:
        return sorted(o.exception_id for o in self.occurrences if isinstance(o, StandaloneOccurrence))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def to_dict(self) -> dict[str, object]:
        """Serialize with instants in UTC and provenance in a stable order."""
        return {
            "date": self.date.isoformat(),
            "start": to_utc_iso(self.start),
            "end": to_utc_iso(self.end),
            "is_exception": self.is_exception,
            "occurrences": [o.to_dict() for o in sorted(self.occurrences, key=lambda o: o.sort_key)],
        }

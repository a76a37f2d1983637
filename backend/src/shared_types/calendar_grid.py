"""
Render model produced by the calendar grid builder.

A CalendarGrid is rebuilt from rows on every request and never mutated. Cell
times are display-zone instants; ``to_dict`` is the serialized form handed to
renderers and must be identical for identical inputs.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from shared_types.availability import MergedTimeBlock
from utils.datetime_utils import format_wall_time, to_utc_iso


class CalendarView(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class GridStatus(str, Enum):
    READY = "ready"
    LOADING = "loading"
    ERROR = "error"


class CellState(str, Enum):
    AVAILABLE = "available"
    EXCEPTION_AVAILABLE = "exception_available"
    # Open for part of the slot only; the slot start itself is not open
    PARTIALLY_AVAILABLE = "partially_available"
    BOOKED = "booked"
    UNAVAILABLE = "unavailable"


class CellPosition(str, Enum):
    """Where a cell sits within its contiguous run (used for rounded edges)."""
    START = "start"
    MIDDLE = "middle"
    END = "end"
    SINGLE = "single"
    CONTINUATION = "continuation"


@dataclass(frozen=True)
class AppointmentLabel:
    """Label drawn on the first sub-slot an appointment covers."""
    appointment_id: int
    client_id: int
    client_name: str
    appointment_type: str
    start: datetime
    end: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appointment_id": self.appointment_id,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "appointment_type": self.appointment_type,
            "start": to_utc_iso(self.start),
            "end": to_utc_iso(self.end),
        }


@dataclass(frozen=True)
class SlotBooking:
    """
    Which appointments occupy a sub-slot.

    ``appointment_id`` is the earliest-starting one and ``label`` is set only
    on its first slot. ``appointment_ids`` lists every overlapping
    appointment; ``labels`` holds one label for each appointment whose first
    slot this is.
    """
    appointment_id: int
    is_start: bool
    label: Optional[AppointmentLabel] = None
    appointment_ids: Tuple[int, ...] = ()
    labels: Tuple[AppointmentLabel, ...] = ()


@dataclass(frozen=True)
class GridCell:
    start: datetime
    end: datetime
    state: CellState
    position: Optional[CellPosition] = None
    appointment_id: Optional[int] = None
    appointment: Optional[AppointmentLabel] = None
    appointment_ids: Tuple[int, ...] = ()
    appointments: Tuple[AppointmentLabel, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": format_wall_time(self.start.timetz()),
            "start": to_utc_iso(self.start),
            "end": to_utc_iso(self.end),
            "state": self.state.value,
            "position": self.position.value if self.position else None,
            "appointment_id": self.appointment_id,
            "appointment": self.appointment.to_dict() if self.appointment else None,
            "appointment_ids": list(self.appointment_ids),
            "appointments": [label.to_dict() for label in self.appointments],
        }


@dataclass(frozen=True)
class DayColumn:
    """One display-zone date of a day or week view."""
    date: date
    cells: Tuple[GridCell, ...] = ()
    blocks: Tuple[MergedTimeBlock, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "cells": [cell.to_dict() for cell in self.cells],
            "blocks": [block.to_dict() for block in self.blocks],
        }


@dataclass(frozen=True)
class MonthDaySummary:
    date: date
    in_month: bool
    has_availability: bool = False
    is_modified: bool = False
    appointment_count: int = 0
    display_hours: Optional[str] = None
    is_bookable: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "in_month": self.in_month,
            "has_availability": self.has_availability,
            "is_modified": self.is_modified,
            "appointment_count": self.appointment_count,
            "display_hours": self.display_hours,
            "is_bookable": self.is_bookable,
        }


@dataclass(frozen=True)
class CalendarGrid:
    """
    Complete render model for one calendar request.

    ``days`` is filled for day/week views and ``month_days`` for the month
    view. A grid whose status is not READY carries no cells at all.
    """
    view: CalendarView
    anchor_date: date
    clinician_id: Optional[int]
    display_time_zone: str
    time_granularity: str
    status: GridStatus = GridStatus.READY
    version: Optional[int] = None
    days: Tuple[DayColumn, ...] = ()
    month_days: Tuple[MonthDaySummary, ...] = field(default_factory=tuple)
    error: Optional[str] = None

    @classmethod
    def pending(
        cls,
        view: CalendarView,
        anchor_date: date,
        clinician_id: Optional[int],
        display_time_zone: str,
        time_granularity: str,
        version: Optional[int] = None,
        error: Optional[str] = None,
    ) -> "CalendarGrid":
        """Create an empty grid in LOADING state, or ERROR when ``error`` is given."""
        return cls(
            view=view,
            anchor_date=anchor_date,
            clinician_id=clinician_id,
            display_time_zone=display_time_zone,
            time_granularity=time_granularity,
            status=GridStatus.ERROR if error else GridStatus.LOADING,
            version=version,
            error=error,
        )

    @property
    def is_ready(self) -> bool:
        return self.status == GridStatus.READY

    def day(self, day: date) -> Optional[DayColumn]:
        for column in self.days:
            if column.date == day:
                return column
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view": self.view.value,
            "anchor_date": self.anchor_date.isoformat(),
            "clinician_id": self.clinician_id,
            "display_time_zone": self.display_time_zone,
            "time_granularity": self.time_granularity,
            "status": self.status.value,
            "version": self.version,
            "error": self.error,
            "days": {column.date.isoformat(): column.to_dict() for column in self.days},
            "month_days": {summary.date.isoformat(): summary.to_dict() for summary in self.month_days},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

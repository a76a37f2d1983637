"""
Shared type definitions for the scheduling engine.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import (
    CandidateInterval,
    MergedTimeBlock,
    Occurrence,
    RecurringOccurrence,
    StandaloneOccurrence,
)
from shared_types.calendar_grid import (
    AppointmentLabel,
    CalendarGrid,
    CalendarView,
    CellPosition,
    CellState,
    DayColumn,
    GridCell,
    GridStatus,
    MonthDaySummary,
    SlotBooking,
)
from shared_types.schedule_rows import AppointmentRow, ExceptionRow, RuleRow

__all__ = [
    "CandidateInterval",
    "MergedTimeBlock",
    "Occurrence",
    "RecurringOccurrence",
    "StandaloneOccurrence",
    "AppointmentLabel",
    "CalendarGrid",
    "CalendarView",
    "CellPosition",
    "CellState",
    "DayColumn",
    "GridCell",
    "GridStatus",
    "MonthDaySummary",
    "SlotBooking",
    "AppointmentRow",
    "ExceptionRow",
    "RuleRow",
]

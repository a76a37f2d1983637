"""
Services package for scheduling business logic.

This package contains service classes that encapsulate the availability
pipeline and the row store shared across API endpoints.
"""

from .recurrence_service import RecurrenceService
from .exception_overlay_service import ExceptionOverlayService
from .interval_merge_service import IntervalMergeService
from .appointment_carving_service import AppointmentCarvingService
from .schedule_settings_service import ScheduleSettingsService
from .calendar_grid_service import CalendarGridService, build_calendar_grid
from .schedule_data_service import ScheduleDataService, ScheduleRowStore
from .calendar_refresh_service import CalendarRefreshService, CalendarRequest

__all__ = [
    "RecurrenceService",
    "ExceptionOverlayService",
    "IntervalMergeService",
    "AppointmentCarvingService",
    "ScheduleSettingsService",
    "CalendarGridService",
    "build_calendar_grid",
    "ScheduleDataService",
    "ScheduleRowStore",
    "CalendarRefreshService",
    "CalendarRequest",
]

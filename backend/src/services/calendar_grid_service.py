"""
Calendar grid service.

Orchestrates the availability pipeline for one calendar request:
1. Row validation (malformed rows are quarantined)
2. Weekly rule expansion in the clinician zone
3. Exception overlay
4. Interval merging
5. Appointment carving
6. Day/week cells or month summaries in the display zone

Everything here is pure: given the same rows, settings and zones it returns
an identical grid.
"""

import logging
from datetime import date as date_type, datetime, timedelta, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from core.config import CALENDAR_DISPLAY_START_HOUR, CALENDAR_DISPLAY_END_HOUR
from core.constants import DAYS_IN_WEEK, ROW_FETCH_PADDING_DAYS
from models.clinician import ScheduleSettings
from services.appointment_carving_service import AppointmentCarvingService, BookedInterval
from services.exception_overlay_service import ExceptionOverlayService
from services.interval_merge_service import IntervalMergeService
from services.recurrence_service import RecurrenceService
from services.schedule_settings_service import ScheduleSettingsService
from shared_types.availability import MergedTimeBlock
from shared_types.calendar_grid import (
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
from shared_types.schedule_rows import (
    AppointmentRow,
    ExceptionRow,
    RuleRow,
    parse_appointment_rows,
    parse_exception_rows,
    parse_rule_rows,
)
from utils.datetime_utils import (
    add_elapsed,
    clinician_dates_for_window,
    date_range,
    format_time_range,
    local_midnight,
    local_to_instant,
    month_grid_range,
    parse_date_string,
    resolve_time_zone,
    week_start,
)

logger = logging.getLogger(__name__)


class CalendarGridService:
    """
    Builds CalendarGrid render models.

    The display window (rows shown in day/week views) is configurable per
    instance; ``build_calendar_grid`` uses the configured defaults.
    """

    def __init__(
        self,
        display_start_hour: int = CALENDAR_DISPLAY_START_HOUR,
        display_end_hour: int = CALENDAR_DISPLAY_END_HOUR,
    ):
        if not 0 <= display_start_hour < display_end_hour <= 24:
            raise ValueError(
                f"Invalid display window {display_start_hour}:00-{display_end_hour}:00"
            )
        self.display_start_hour = display_start_hour
        self.display_end_hour = display_end_hour

    @staticmethod
    def visible_dates(view: CalendarView, anchor_date: date_type) -> List[date_type]:
        """
        Get the display-zone dates a view shows.

        Day: the anchor. Week: the Sunday-start week containing the anchor.
        Month: the Sunday-start weeks covering the anchor's month.
        """
        if view == CalendarView.DAY:
            return [anchor_date]
        if view == CalendarView.WEEK:
            first = week_start(anchor_date)
            return date_range(first, first + timedelta(days=DAYS_IN_WEEK - 1))
        first, last = month_grid_range(anchor_date)
        return date_range(first, last)

    @classmethod
    def row_date_range(cls, view: CalendarView, anchor_date: date_type) -> Tuple[date_type, date_type]:
        """
        Get the stored-date range to fetch rows for, whatever the two zones are.

        Rows are dated in the clinician zone, which can be more than a day
        ahead of or behind the display zone.
        """
        dates = cls.visible_dates(view, anchor_date)
        padding = timedelta(days=ROW_FETCH_PADDING_DAYS)
        return dates[0] - padding, dates[-1] + padding

    def slot_starts(self, day: date_type, tz: ZoneInfo, granularity_minutes: int) -> List[datetime]:
        """
        Get the sub-slot start instants of one display-zone date.

        Wall times that collapse onto the same instant across a DST gap are
        emitted once.
        """
        starts: List[datetime] = []
        for minute in range(self.display_start_hour * 60, self.display_end_hour * 60, granularity_minutes):
            instant = local_to_instant(day, time(minute // 60, minute % 60), tz)
            if starts and instant <= starts[-1]:
                continue
            starts.append(instant)
        return starts

    @staticmethod
    def _block_at(blocks: Sequence[MergedTimeBlock], instant: datetime) -> Optional[MergedTimeBlock]:
        for block in blocks:
            if block.contains(instant):
                return block
        return None

    @staticmethod
    def _blocks_in_window(
        blocks: Sequence[MergedTimeBlock], window_start: datetime, window_end: datetime
    ) -> List[MergedTimeBlock]:
        return [block for block in blocks if block.overlaps(window_start, window_end)]

    def _build_cells(
        self,
        slot_starts: List[datetime],
        slot_length: timedelta,
        blocks: Sequence[MergedTimeBlock],
        bookings: List[Optional[SlotBooking]],
    ) -> Tuple[GridCell, ...]:
        # First pass: what occupies each slot
        slot_blocks = [
            None if booking is not None else self._block_at(blocks, start)
            for start, booking in zip(slot_starts, bookings)
        ]

        cells: List[GridCell] = []
        last_index = len(slot_starts) - 1
        for index, start in enumerate(slot_starts):
            end = add_elapsed(start, slot_length)
            booking = bookings[index]
            if booking is not None:
                cells.append(GridCell(
                    start=start,
                    end=end,
                    state=CellState.BOOKED,
                    position=CellPosition.START if booking.is_start else CellPosition.CONTINUATION,
                    appointment_id=booking.appointment_id,
                    appointment=booking.label,
                    appointment_ids=booking.appointment_ids,
                    appointments=booking.labels,
                ))
                continue

            block = slot_blocks[index]
            if block is None:
                # Open time that misses the slot start (short or unaligned windows)
                partial = any(b.overlaps(start, end) for b in blocks)
                cells.append(GridCell(
                    start=start,
                    end=end,
                    state=CellState.PARTIALLY_AVAILABLE if partial else CellState.UNAVAILABLE,
                    position=CellPosition.SINGLE if partial else None,
                ))
                continue

            # Runs break at block edges and at booked slots
            joins_previous = index > 0 and slot_blocks[index - 1] is block
            joins_next = index < last_index and slot_blocks[index + 1] is block
            if joins_previous and joins_next:
                position = CellPosition.MIDDLE
            elif joins_previous:
                position = CellPosition.END
            elif joins_next:
                position = CellPosition.START
            else:
                position = CellPosition.SINGLE

            cells.append(GridCell(
                start=start,
                end=end,
                state=CellState.EXCEPTION_AVAILABLE if block.is_exception else CellState.AVAILABLE,
                position=position,
            ))
        return tuple(cells)

    def _build_day_columns(
        self,
        days: List[date_type],
        display_tz: ZoneInfo,
        settings: ScheduleSettings,
        blocks: Sequence[MergedTimeBlock],
        booked: Sequence[BookedInterval],
        client_names: Optional[Dict[int, str]],
    ) -> Tuple[DayColumn, ...]:
        slot_length = timedelta(minutes=settings.granularity_minutes)
        columns: List[DayColumn] = []
        for day in days:
            starts = self.slot_starts(day, display_tz, settings.granularity_minutes)
            bookings = AppointmentCarvingService.carve(starts, slot_length, booked, client_names)
            window = (local_midnight(day, display_tz), local_midnight(day + timedelta(days=1), display_tz))
            columns.append(DayColumn(
                date=day,
                cells=self._build_cells(starts, slot_length, blocks, bookings),
                blocks=tuple(self._blocks_in_window(blocks, *window)),
            ))
        return tuple(columns)

    def _build_month_days(
        self,
        days: List[date_type],
        anchor_date: date_type,
        display_tz: ZoneInfo,
        settings: ScheduleSettings,
        blocks: Sequence[MergedTimeBlock],
        booked: Sequence[BookedInterval],
        today: Optional[date_type],
    ) -> Tuple[MonthDaySummary, ...]:
        summaries: List[MonthDaySummary] = []
        for day in days:
            window_start = local_midnight(day, display_tz)
            window_end = local_midnight(day + timedelta(days=1), display_tz)
            day_blocks = self._blocks_in_window(blocks, window_start, window_end)

            display_hours = None
            if day_blocks:
                first_start = max(min(b.start for b in day_blocks), window_start)
                last_end = min(max(b.end for b in day_blocks), window_end)
                display_hours = format_time_range(first_start.astimezone(display_tz), last_end.astimezone(display_tz))

            summaries.append(MonthDaySummary(
                date=day,
                in_month=(day.year, day.month) == (anchor_date.year, anchor_date.month),
                has_availability=bool(day_blocks),
                is_modified=any(b.is_exception for b in day_blocks),
                appointment_count=sum(1 for start, _, _ in booked if window_start <= start < window_end),
                display_hours=display_hours,
                is_bookable=(
                    ScheduleSettingsService.is_date_bookable(settings, day, today)
                    if today is not None else None
                ),
            ))
        return tuple(summaries)

    def _empty_grid(
        self,
        view: CalendarView,
        anchor_date: date_type,
        display_tz: ZoneInfo,
        settings: ScheduleSettings,
        version: Optional[int],
    ) -> CalendarGrid:
        days = self.visible_dates(view, anchor_date)
        if view == CalendarView.MONTH:
            return CalendarGrid(
                view=view,
                anchor_date=anchor_date,
                clinician_id=None,
                display_time_zone=display_tz.key,
                time_granularity=settings.time_granularity,
                version=version,
                month_days=tuple(
                    MonthDaySummary(date=day, in_month=day.month == anchor_date.month) for day in days
                ),
            )
        slot_length = timedelta(minutes=settings.granularity_minutes)
        columns = []
        for day in days:
            starts = self.slot_starts(day, display_tz, settings.granularity_minutes)
            columns.append(DayColumn(
                date=day,
                cells=tuple(
                    GridCell(start=start, end=add_elapsed(start, slot_length), state=CellState.UNAVAILABLE)
                    for start in starts
                ),
            ))
        return CalendarGrid(
            view=view,
            anchor_date=anchor_date,
            clinician_id=None,
            display_time_zone=display_tz.key,
            time_granularity=settings.time_granularity,
            version=version,
            days=tuple(columns),
        )

    def compute_blocks(
        self,
        rules: Iterable[RuleRow],
        exceptions: Iterable[ExceptionRow],
        start_date: date_type,
        end_date: date_type,
        clinician_tz: ZoneInfo,
    ) -> Dict[date_type, List[MergedTimeBlock]]:
        """Run expansion, overlay and merge for a clinician-zone date range."""
        unique_rules = RecurrenceService.deduplicate_rules(rules)
        candidates = RecurrenceService.expand_rules(unique_rules, start_date, end_date, clinician_tz)
        overlaid = ExceptionOverlayService.apply_exceptions(candidates, exceptions, clinician_tz)
        return IntervalMergeService.merge_by_date(overlaid)

    def build(
        self,
        view: Union[CalendarView, str],
        anchor_date: Union[date_type, str],
        clinician_id: Optional[int],
        rules: Optional[Iterable[Any]],
        exceptions: Optional[Iterable[Any]],
        appointments: Optional[Iterable[Any]],
        settings: Optional[Union[ScheduleSettings, Dict[str, Any]]],
        display_time_zone: Optional[str],
        clinician_time_zone: Optional[str] = None,
        version: Optional[int] = None,
        client_names: Optional[Dict[int, str]] = None,
        today: Optional[date_type] = None,
    ) -> CalendarGrid:
        """
        Build the render model for one calendar request.

        Args:
            view: 'day', 'week' or 'month'
            anchor_date: Any date inside the period to show
            clinician_id: Clinician whose calendar is shown; None yields an
                all-unavailable grid
            rules: Weekly rule rows (ORM objects, dicts or RuleRow)
            exceptions: Exception rows for the period, soft-deleted included
            appointments: Appointment rows for the period
            settings: Stored settings document (defaults fill the gaps)
            display_time_zone: Zone the viewer sees times in
            clinician_time_zone: Zone the rows are stored in; defaults to the
                display zone
            version: Request token echoed back on the grid
            client_names: Client id to display name lookup for labels
            today: Clinician-zone date used to flag bookable month days

        Returns:
            CalendarGrid with status READY

        Raises:
            ValueError: If view or anchor_date is invalid
        """
        view = CalendarView(view)
        if isinstance(anchor_date, str):
            anchor_date = parse_date_string(anchor_date)

        display_tz = resolve_time_zone(display_time_zone)
        clinician_tz = resolve_time_zone(clinician_time_zone, fallback=display_tz.key) if clinician_time_zone else display_tz
        resolved_settings = ScheduleSettingsService.resolve(settings)

        if clinician_id is None:
            logger.debug("No clinician selected; returning an all-unavailable grid")
            return self._empty_grid(view, anchor_date, display_tz, resolved_settings, version)

        rule_rows = [r for r in parse_rule_rows(rules) if r.clinician_id == clinician_id]
        exception_rows = [e for e in parse_exception_rows(exceptions) if e.clinician_id == clinician_id]
        appointment_rows: List[AppointmentRow] = [
            a for a in parse_appointment_rows(appointments)
            if a.clinician_id == clinician_id and a.is_scheduled
        ]

        days = self.visible_dates(view, anchor_date)
        start_date, end_date = clinician_dates_for_window(days, display_tz, clinician_tz)
        blocks_by_date = self.compute_blocks(rule_rows, exception_rows, start_date, end_date, clinician_tz)
        blocks = [block for day_blocks in blocks_by_date.values() for block in day_blocks]
        booked = AppointmentCarvingService.appointment_intervals(appointment_rows, clinician_tz)

        logger.debug(
            f"Building {view.value} grid for clinician {clinician_id} at {anchor_date}: "
            f"{len(rule_rows)} rules, {len(exception_rows)} exceptions, "
            f"{len(booked)} appointments, {len(blocks)} blocks"
        )

        if view == CalendarView.MONTH:
            return CalendarGrid(
                view=view,
                anchor_date=anchor_date,
                clinician_id=clinician_id,
                display_time_zone=display_tz.key,
                time_granularity=resolved_settings.time_granularity,
                status=GridStatus.READY,
                version=version,
                month_days=self._build_month_days(
                    days, anchor_date, display_tz, resolved_settings, blocks, booked, today
                ),
            )

        return CalendarGrid(
            view=view,
            anchor_date=anchor_date,
            clinician_id=clinician_id,
            display_time_zone=display_tz.key,
            time_granularity=resolved_settings.time_granularity,
            status=GridStatus.READY,
            version=version,
            days=self._build_day_columns(
                days, display_tz, resolved_settings, blocks, booked, client_names
            ),
        )


def build_calendar_grid(
    view: Union[CalendarView, str],
    anchor_date: Union[date_type, str],
    clinician_id: Optional[int],
    rules: Optional[Iterable[Any]],
    exceptions: Optional[Iterable[Any]],
    appointments: Optional[Iterable[Any]],
    settings: Optional[Union[ScheduleSettings, Dict[str, Any]]],
    display_time_zone: Optional[str],
    clinician_time_zone: Optional[str] = None,
    version: Optional[int] = None,
    client_names: Optional[Dict[int, str]] = None,
    today: Optional[date_type] = None,
) -> CalendarGrid:
    """Build a calendar grid with the configured display window."""
    return CalendarGridService().build(
        view,
        anchor_date,
        clinician_id,
        rules,
        exceptions,
        appointments,
        settings,
        display_time_zone,
        clinician_time_zone=clinician_time_zone,
        version=version,
        client_names=client_names,
        today=today,
    )

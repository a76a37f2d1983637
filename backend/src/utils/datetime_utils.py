"""
Datetime utilities for consistent timezone handling across the scheduling engine.

Rules, exceptions and appointments are stored as dateless wall-clock times
("HH:MM") in the clinician's own zone. All interval arithmetic happens on
timezone-aware datetimes anchored in that zone; the calendar then relabels the
same instants into the viewer's display zone.

DST policy (zoneinfo semantics, fold=0):
- A wall time that falls in a spring-forward gap is shifted forward by the gap.
- A wall time that occurs twice in a fall-back overlap resolves to the first
  occurrence.
"""

import logging
from datetime import datetime, timezone, timedelta, date, time
from typing import List, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import DEFAULT_TIME_ZONE
from core.constants import TIME_ZONE_ALIASES, WEEK_START_WEEKDAY, DAYS_IN_WEEK
from core.exceptions import TimeZoneResolutionError

logger = logging.getLogger(__name__)

UTC = timezone.utc


def utc_now() -> datetime:
    """Get the current instant as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def _load_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimeZoneResolutionError(name) from e


def resolve_time_zone(name: Optional[str], fallback: Optional[str] = None) -> ZoneInfo:
    """
    Resolve a time zone identifier, falling back instead of failing.

    Accepts IANA names ("America/New_York") as well as the display names and
    abbreviations clinicians have historically saved ("Eastern Time (ET)", "EST").

    Args:
        name: Zone identifier to resolve (may be None or empty)
        fallback: Zone to use when ``name`` cannot be resolved.
            Defaults to ``DEFAULT_TIME_ZONE``.

    Returns:
        ZoneInfo for the resolved zone (UTC if even the fallback is unknown)
    """
    fallback_name = fallback or DEFAULT_TIME_ZONE
    candidate = (name or "").strip()
    candidate = TIME_ZONE_ALIASES.get(candidate, candidate)

    if candidate:
        try:
            return _load_zone(candidate)
        except TimeZoneResolutionError as e:
            logger.warning(f"{e}; falling back to {fallback_name}")
    else:
        logger.debug(f"No time zone supplied; using {fallback_name}")

    try:
        return _load_zone(fallback_name)
    except TimeZoneResolutionError as e:
        logger.error(f"Fallback zone unusable ({e}); using UTC")
        return ZoneInfo("UTC")


def is_valid_time_zone(name: Optional[str]) -> bool:
    """Check whether ``name`` (or its alias) is a known IANA zone."""
    if not name:
        return False
    candidate = TIME_ZONE_ALIASES.get(name.strip(), name.strip())
    try:
        _load_zone(candidate)
    except TimeZoneResolutionError:
        return False
    return True


def ensure_iana_time_zone(name: Optional[str]) -> str:
    """Normalize a stored zone name to the IANA key that will actually be used."""
    return resolve_time_zone(name).key


def parse_wall_time(value: Union[str, time]) -> time:
    """
    Parse a dateless wall-clock time.

    Accepts "HH:MM" and "HH:MM:SS" (as stored by the row store) or a
    ``datetime.time`` which is returned with seconds preserved.

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid wall-clock time: {value!r}")

    parts = value.strip().split(':')
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid wall-clock time (expected HH:MM): {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    try:
        return time(hour, minute, second)
    except ValueError as e:
        raise ValueError(f"Invalid wall-clock time (expected HH:MM): {value!r}") from e


def format_wall_time(value: time) -> str:
    """Format a wall-clock time as "HH:MM"."""
    return f"{value.hour:02d}:{value.minute:02d}"


def local_to_instant(day: date, wall_time: time, tz: ZoneInfo) -> datetime:
    """
    Anchor a wall-clock time on ``day`` in zone ``tz``.

    The returned datetime is timezone-aware in ``tz`` and normalized through
    UTC, so gap times come back already shifted to a real local time.
    """
    local = datetime.combine(day, wall_time).replace(tzinfo=tz)
    return local.astimezone(UTC).astimezone(tz)


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """Get the instant of local midnight for ``day`` in ``tz``."""
    return local_to_instant(day, time(0, 0), tz)


def add_elapsed(instant: datetime, delta: timedelta) -> datetime:
    """
    Add real elapsed time to an aware datetime.

    Plain ``+`` on an aware datetime adds wall-clock time, which is an hour
    off across a DST transition.
    """
    return (instant.astimezone(UTC) + delta).astimezone(instant.tzinfo)


def clinician_dates_for_window(
    display_dates: List[date],
    display_tz: ZoneInfo,
    clinician_tz: ZoneInfo,
) -> Tuple[date, date]:
    """
    Get the clinician-zone dates whose local days touch a display window.

    The window runs from local midnight of the first display date to local
    midnight after the last one. One day of margin on each side catches
    wall times that DST gaps push across midnight.
    """
    window_start = local_midnight(display_dates[0], display_tz)
    window_end = local_midnight(display_dates[-1] + timedelta(days=1), display_tz)
    first = window_start.astimezone(clinician_tz).date()
    last = (window_end - timedelta(microseconds=1)).astimezone(clinician_tz).date()
    return first - timedelta(days=1), last + timedelta(days=1)


def instant_to_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """
    Relabel an instant into zone ``tz``.

    Naive datetimes are treated as UTC instants.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz)


def to_utc_iso(instant: datetime) -> str:
    """Serialize an instant as an ISO-8601 UTC string (``Z`` suffix)."""
    return instant_to_local(instant, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_time_12h(value: Union[datetime, time]) -> str:
    """
    Format a time for display in 12-hour format, e.g. "9:00 AM".

    Aware datetimes are formatted in their own zone; callers relabel them into
    the display zone first.
    """
    hour = value.hour
    minute = value.minute
    if hour == 0:
        hour_12 = 12
        period = 'AM'
    elif hour < 12:
        hour_12 = hour
        period = 'AM'
    elif hour == 12:
        hour_12 = 12
        period = 'PM'
    else:
        hour_12 = hour - 12
        period = 'PM'
    return f"{hour_12}:{minute:02d} {period}"


def format_time_range(start: Union[datetime, time], end: Union[datetime, time]) -> str:
    """Format a start/end pair as "9:00 AM-5:00 PM"."""
    return f"{format_time_12h(start)}-{format_time_12h(end)}"


def format_datetime(dt: datetime, tz: ZoneInfo) -> str:
    """
    Format an instant for user-facing display in zone ``tz``.

    Formats as "12/25 (Wed) 1:30 PM".
    """
    local_datetime = instant_to_local(dt, tz)
    return f"{local_datetime.strftime('%m/%d')} ({local_datetime.strftime('%a')}) {format_time_12h(local_datetime)}"


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days ("2022-1-1").

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def today_in_zone(tz: ZoneInfo, now: Optional[datetime] = None) -> date:
    """Get the calendar date of ``now`` (default: current instant) in ``tz``."""
    return instant_to_local(now or utc_now(), tz).date()


def week_start(day: date) -> date:
    """Get the Sunday on or before ``day``."""
    offset = (day.weekday() - WEEK_START_WEEKDAY) % DAYS_IN_WEEK
    return day - timedelta(days=offset)


def date_range(start_date: date, end_date: date) -> List[date]:
    """List every date from ``start_date`` to ``end_date`` inclusive."""
    if end_date < start_date:
        return []
    return [start_date + timedelta(days=i) for i in range((end_date - start_date).days + 1)]


def month_grid_range(anchor: date) -> Tuple[date, date]:
    """
    Get the date span shown by a month view.

    The span covers the Sunday-start weeks that contain the first and last day
    of ``anchor``'s month.
    """
    month_start = anchor.replace(day=1)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)
    month_end = next_month - timedelta(days=1)
    return week_start(month_start), week_start(month_end) + timedelta(days=DAYS_IN_WEEK - 1)

"""
Validated row entities at the row-store boundary.

Rows arrive either as ORM objects or as plain dicts (wall-clock times as
"HH:MM" strings). They are parsed into these pydantic models before any merge
logic runs; rows that break an invariant are quarantined (skipped and logged)
instead of aborting the whole calendar build.
"""

import logging
from datetime import date as date_type, datetime, time
from typing import Any, ClassVar, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from core.constants import APPOINTMENT_STATUS_SCHEDULED, WEEKDAY_NAMES
from core.exceptions import InvariantViolation
from utils.datetime_utils import UTC, parse_wall_time

logger = logging.getLogger(__name__)


class _ScheduleRow(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    row_kind: ClassVar[str] = "row"


class RuleRow(_ScheduleRow):
    """A weekly recurring open window (day_of_week: 0=Monday ... 6=Sunday)."""
    row_kind: ClassVar[str] = "rule"

    id: int
    clinician_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True

    @field_validator('day_of_week', mode='before')
    @classmethod
    def parse_day_of_week(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip().isdigit():
            name = v.strip().capitalize()
            if name not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown day of week: {v!r}")
            return WEEKDAY_NAMES.index(name)
        return v

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {v}")
        return v

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return parse_wall_time(v)

    @model_validator(mode='after')
    def validate_window(self) -> "RuleRow":
        if self.start_time >= self.end_time:
            raise ValueError(f"start_time {self.start_time} is not before end_time {self.end_time}")
        return self


class ExceptionRow(_ScheduleRow):
    """
    A per-date override.

    With ``original_rule_id`` set it rewrites (or, when deleted, cancels) that
    rule's occurrence on ``specific_date``; a null start or end keeps the
    rule's own value for that side. Without it, it is a standalone window and
    needs both times.
    """
    row_kind: ClassVar[str] = "exception"

    id: int
    clinician_id: int
    specific_date: date_type
    original_rule_id: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return parse_wall_time(v)

    @field_validator('created_at')
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive timestamps; the store writes UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode='after')
    def validate_window(self) -> "ExceptionRow":
        if self.end_time is not None and self.start_time is None:
            raise ValueError("end_time is set but start_time is not")
        if self.start_time is not None and self.end_time is not None and self.start_time >= self.end_time:
            raise ValueError(f"start_time {self.start_time} is not before end_time {self.end_time}")
        return self

    @property
    def is_standalone(self) -> bool:
        return self.original_rule_id is None

    @property
    def recency_key(self) -> tuple[datetime, int]:
        """Ordering key for "most recent wins" (created_at, then id)."""
        return (self.created_at or datetime.min.replace(tzinfo=UTC), self.id)


class AppointmentRow(_ScheduleRow):
    """A booked session on one date (wall-clock times in the clinician zone)."""
    row_kind: ClassVar[str] = "appointment"

    id: int
    client_id: int
    clinician_id: int
    date: date_type
    start_time: time
    end_time: time
    status: str = APPOINTMENT_STATUS_SCHEDULED
    type: str = ""
    client_name: Optional[str] = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return parse_wall_time(v)

    @model_validator(mode='after')
    def validate_window(self) -> "AppointmentRow":
        if self.start_time >= self.end_time:
            raise ValueError(f"start_time {self.start_time} is not before end_time {self.end_time}")
        return self

    @property
    def is_scheduled(self) -> bool:
        return self.status == APPOINTMENT_STATUS_SCHEDULED


RowT = TypeVar('RowT', bound=_ScheduleRow)


def _row_id(raw: Any) -> Any:
    if isinstance(raw, dict):
        return raw.get('id')  # type: ignore[reportUnknownMemberType]
    return getattr(raw, 'id', None)


def parse_row(model: Type[RowT], raw: Any) -> RowT:
    """
    Parse one raw row into ``model``.

    Raises:
        InvariantViolation: If the row is malformed or breaks an invariant
    """
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except (ValidationError, ValueError) as e:
        raise InvariantViolation(
            f"Invalid {model.row_kind} row {_row_id(raw)!r}: {e}",
            row_kind=model.row_kind,
            row_id=_row_id(raw),
        ) from e


def parse_rows(model: Type[RowT], raw_rows: Optional[Iterable[Any]]) -> List[RowT]:
    """
    Parse raw rows, quarantining the ones that fail validation.

    Returns:
        The valid rows, in input order
    """
    parsed: List[RowT] = []
    for raw in raw_rows or []:
        try:
            parsed.append(parse_row(model, raw))
        except InvariantViolation as e:
            logger.warning(f"Skipping {e.row_kind} row {e.row_id}: {e}")
    return parsed


def parse_rule_rows(raw_rows: Optional[Iterable[Any]]) -> List[RuleRow]:
    return parse_rows(RuleRow, raw_rows)


def parse_exception_rows(raw_rows: Optional[Iterable[Any]]) -> List[ExceptionRow]:
    return parse_rows(ExceptionRow, raw_rows)


def parse_appointment_rows(raw_rows: Optional[Iterable[Any]]) -> List[AppointmentRow]:
    return parse_rows(AppointmentRow, raw_rows)

"""
Clinician model representing a therapist whose calendar is being scheduled.

Schedule settings (slot granularity and booking window) are embedded on the
clinician row as a JSON document validated by the ScheduleSettings schema.
"""

from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import String, TIMESTAMP, Boolean, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import (
    MAX_STRING_LENGTH,
    DEFAULT_TIME_GRANULARITY,
    DEFAULT_MIN_DAYS_AHEAD,
    DEFAULT_MAX_DAYS_AHEAD,
    MIN_BOOKING_WINDOW_SPAN_DAYS,
    TIME_GRANULARITY_MINUTES,
)
from core.config import DEFAULT_TIME_ZONE


# Settings schema validation model
class ScheduleSettings(BaseModel):
    """Schema for clinician schedule settings."""
    time_granularity: str = Field(default=DEFAULT_TIME_GRANULARITY, description="Minimum bookable unit: 'hour' or 'half_hour'.")
    min_days_ahead: int = Field(default=DEFAULT_MIN_DAYS_AHEAD, ge=0, description="Minimum number of days of notice required to book an appointment.")
    max_days_ahead: int = Field(default=DEFAULT_MAX_DAYS_AHEAD, ge=0, description="Maximum number of days in advance that clients can book appointments.")

    @model_validator(mode='before')
    @classmethod
    def normalize_granularity(cls, data: Any) -> Any:
        """
        Normalize legacy granularity spellings.

        Older rows stored 'half-hour' or 'halfhour'; both map to 'half_hour'.
        """
        if isinstance(data, dict):
            granularity: Any = data.get('time_granularity')  # type: ignore[reportUnknownVariableType]
            if isinstance(granularity, str):
                normalized = granularity.strip().lower().replace('-', '_')
                if normalized == 'halfhour':
                    normalized = 'half_hour'
                data = {**data, 'time_granularity': normalized}
        return data  # type: ignore[reportUnknownVariableType]

    @model_validator(mode='after')
    def validate_granularity(self) -> "ScheduleSettings":
        """Reject granularities the calendar cannot render."""
        if self.time_granularity not in TIME_GRANULARITY_MINUTES:
            raise ValueError(f"Unsupported time_granularity: {self.time_granularity}")
        return self

    @property
    def granularity_minutes(self) -> int:
        """Length of one calendar sub-slot in minutes."""
        return TIME_GRANULARITY_MINUTES[self.time_granularity]

    def with_enforced_booking_window(self) -> "ScheduleSettings":
        """
        Return a copy whose max_days_ahead spans at least 30 days past min_days_ahead.

        Saving never rejects a too-short window; it widens it instead.
        """
        floor = self.min_days_ahead + MIN_BOOKING_WINDOW_SPAN_DAYS
        if self.max_days_ahead >= floor:
            return self
        return self.model_copy(update={'max_days_ahead': floor})


class Clinician(Base):
    """
    Clinician entity.

    Owns weekly availability rules, per-date availability exceptions and
    appointments. ``time_zone`` is the zone every stored wall-clock time of
    this clinician is interpreted in.
    """

    __tablename__ = "clinicians"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the clinician."""

    first_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    last_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True, unique=True)

    time_zone: Mapped[str] = mapped_column(String(64), default=DEFAULT_TIME_ZONE)
    """IANA zone name used for all of this clinician's interval arithmetic."""

    settings: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    """
    JSON column containing schedule settings with validated schema.

    Structure (matches ScheduleSettings Pydantic model):
    {
        "time_granularity": "hour",
        "min_days_ahead": 1,
        "max_days_ahead": 90
    }
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    availability_rules = relationship("WeeklyAvailabilityRule", back_populates="clinician", cascade="all, delete-orphan")
    availability_exceptions = relationship("AvailabilityException", back_populates="clinician", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="clinician")

    def get_validated_settings(self) -> ScheduleSettings:
        """Get settings with schema validation."""
        return ScheduleSettings.model_validate(self.settings or {})

    def set_validated_settings(self, settings: ScheduleSettings):
        """Set settings with schema validation and booking-window enforcement."""
        self.settings = settings.with_enforced_booking_window().model_dump()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Clinician(id={self.id}, name='{self.full_name}', time_zone='{self.time_zone}')>"

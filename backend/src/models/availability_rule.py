"""
Weekly availability rule model for a clinician's recurring schedule.

Each record is one open window on one weekday (e.g. Mondays 09:00-12:00).
Clinicians may keep several windows per weekday to model morning and
afternoon sessions; overlapping windows are merged at render time.
"""

from datetime import time, datetime
from typing import Optional
from sqlalchemy import Time, TIMESTAMP, ForeignKey, Index, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import WEEKDAY_NAMES


class WeeklyAvailabilityRule(Base):
    """
    Model for storing clinician recurring availability by day of week.

    Rules are never hard-deleted once an exception references them; they are
    cleared by setting ``is_active`` to False so exception rows keep a valid
    ``original_rule_id``.
    """

    __tablename__ = "availability_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the availability rule."""

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))
    """Reference to the clinician."""

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start of the open window (wall-clock, clinician zone)."""

    end_time: Mapped[time] = mapped_column(Time)
    """End of the open window (wall-clock, clinician zone)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    """Inactive rules are kept for exception history but never expanded."""

    # Metadata
    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    clinician = relationship("Clinician", back_populates="availability_rules")
    exceptions = relationship("AvailabilityException", back_populates="original_rule")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name='check_rule_day_of_week'),
        Index('idx_availability_rules_clinician_day', 'clinician_id', 'day_of_week'),
        Index('idx_availability_rules_clinician_active', 'clinician_id', 'is_active'),
    )

    @property
    def day_name(self) -> str:
        """Get the day name for display."""
        return WEEKDAY_NAMES[self.day_of_week]

    @property
    def duration_minutes(self) -> int:
        """Get the duration of this availability window in minutes."""
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        return end_minutes - start_minutes

    def __repr__(self) -> str:
        return f"<WeeklyAvailabilityRule(clinician_id={self.clinician_id}, day={self.day_name}, {self.start_time}-{self.end_time})>"

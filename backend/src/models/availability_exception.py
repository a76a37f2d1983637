"""
Availability exception model for per-date overrides of a clinician's schedule.

An exception either rewrites or cancels one occurrence of a weekly rule on a
specific date (``original_rule_id`` set), or adds a one-off open window on a
date with no rule behind it (``original_rule_id`` null).
"""

from datetime import date as date_type, datetime, time
from typing import Optional

from sqlalchemy import Date, Time, TIMESTAMP, ForeignKey, Index, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AvailabilityException(Base):
    """
    Per-date availability override.

    Exceptions are soft-deleted (``is_deleted``) rather than removed: a
    deleted exception that references a rule is what suppresses that rule's
    occurrence on the date. When several exceptions exist for the same
    (rule, date) pair, the most recently created one wins.
    """

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the availability exception."""

    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id", ondelete="CASCADE"))

    specific_date: Mapped[date_type] = mapped_column(Date)
    """Date this exception applies to (clinician zone)."""

    original_rule_id: Mapped[Optional[int]] = mapped_column(ForeignKey("availability_rules.id"), nullable=True)
    """Rule whose occurrence is overridden; null for a standalone single-day window."""

    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    clinician = relationship("Clinician", back_populates="availability_exceptions")
    original_rule = relationship("WeeklyAvailabilityRule", back_populates="exceptions")

    __table_args__ = (
        Index('idx_availability_exceptions_clinician_date', 'clinician_id', 'specific_date'),
        Index('idx_availability_exceptions_rule_date', 'original_rule_id', 'specific_date'),
    )

    @property
    def is_standalone(self) -> bool:
        """Check if this exception adds a window rather than overriding a rule."""
        return self.original_rule_id is None

    def __repr__(self) -> str:
        return f"<AvailabilityException(id={self.id}, rule={self.original_rule_id}, date={self.specific_date}, time={self.start_time}-{self.end_time}, deleted={self.is_deleted})>"

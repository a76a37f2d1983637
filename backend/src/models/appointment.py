"""
Appointment model representing a booked therapy session.

Appointments are stored as a date plus wall-clock start/end in the
clinician's zone, matching how availability rules are stored.
"""

from datetime import date as date_type, datetime, time
from typing import Optional

from sqlalchemy import String, Date, Time, TIMESTAMP, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_APPOINTMENT_TYPE_LENGTH, APPOINTMENT_STATUS_SCHEDULED


class Appointment(Base):
    """
    Appointment entity.

    Only appointments whose status is 'scheduled' occupy the calendar grid;
    cancelled, completed and no-show rows are kept for history.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"))
    clinician_id: Mapped[int] = mapped_column(ForeignKey("clinicians.id"))

    date: Mapped[date_type] = mapped_column(Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    status: Mapped[str] = mapped_column(String(50), default=APPOINTMENT_STATUS_SCHEDULED)
    """
    Appointment status. Valid values:
    - 'scheduled': Booked and occupying the calendar
    - 'cancelled': Cancelled by client or clinician
    - 'completed': Session took place
    - 'no_show': Client did not attend
    """

    type: Mapped[str] = mapped_column(String(MAX_APPOINTMENT_TYPE_LENGTH))
    """Session type shown on the calendar label (e.g. 'Therapy Session')."""

    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    client = relationship("Client", back_populates="appointments")
    clinician = relationship("Clinician", back_populates="appointments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'cancelled', 'completed', 'no_show')",
            name='check_appointment_status'
        ),
        Index('idx_appointments_clinician_date', 'clinician_id', 'date'),
        Index('idx_appointments_clinician_date_status', 'clinician_id', 'date', 'status'),
    )

    @property
    def is_scheduled(self) -> bool:
        return self.status == APPOINTMENT_STATUS_SCHEDULED

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, client_id={self.client_id}, clinician_id={self.clinician_id}, date={self.date}, time={self.start_time}-{self.end_time}, status='{self.status}')>"

"""
Client model representing a therapy client who books appointments.

Only the name fields matter to the calendar, which labels booked slots with
the client's display name.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Client(Base):
    """Therapy client entity."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    first_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    last_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    preferred_name: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Name the client asked to be called by; preferred over first_name for display."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    appointments = relationship("Appointment", back_populates="client")

    @property
    def display_name(self) -> str:
        """Name shown on calendar appointment labels."""
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name='{self.display_name}')>"

"""
Schedule data service: the row store behind the calendar.

Reads availability rules, exceptions, appointments and settings for one
clinician and hands them to the grid builder as validated rows. Every
SQLAlchemy failure is wrapped in DataFetchError so callers can show a
loading/error state and retry instead of rendering partial data.
"""

import logging
from datetime import date as date_type, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import APPOINTMENT_STATUS_SCHEDULED
from core.exceptions import DataFetchError, InvariantViolation
from models import Appointment, AvailabilityException, Client, Clinician, WeeklyAvailabilityRule
from models.clinician import ScheduleSettings
from services.schedule_settings_service import ScheduleSettingsService
from shared_types.schedule_rows import (
    AppointmentRow,
    ExceptionRow,
    RuleRow,
    parse_appointment_rows,
    parse_exception_rows,
    parse_row,
    parse_rule_rows,
)

logger = logging.getLogger(__name__)


class ScheduleRowStore(Protocol):
    """Read interface the calendar needs from any row store."""

    def get_rules(self, clinician_id: int) -> List[RuleRow]: ...

    def get_exceptions(self, clinician_id: int, start_date: date_type, end_date: date_type) -> List[ExceptionRow]: ...

    def get_appointments(self, clinician_id: int, start_date: date_type, end_date: date_type) -> List[AppointmentRow]: ...

    def get_settings(self, clinician_id: int) -> ScheduleSettings: ...

    def get_clinician_time_zone(self, clinician_id: int) -> Optional[str]: ...

    def get_client_names(self, client_ids: Iterable[int]) -> Dict[int, str]: ...


class ScheduleDataService:
    """
    SQLAlchemy implementation of the schedule row store.

    One instance wraps one session; it is not shared between threads.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, query: str, error: SQLAlchemyError) -> DataFetchError:
        logger.exception(f"Row store query failed ({query}): {error}")
        self.db.rollback()
        return DataFetchError(f"Failed to load {query}", query=query)

    def get_clinician(self, clinician_id: int) -> Optional[Clinician]:
        try:
            return self.db.query(Clinician).filter(
                Clinician.id == clinician_id,
                Clinician.is_active == True,
            ).first()
        except SQLAlchemyError as e:
            raise self._fail("clinician", e) from e

    def get_clinician_time_zone(self, clinician_id: int) -> Optional[str]:
        clinician = self.get_clinician(clinician_id)
        return clinician.time_zone if clinician else None

    def get_rules(self, clinician_id: int) -> List[RuleRow]:
        """Get the clinician's active weekly rules."""
        try:
            rows = self.db.query(WeeklyAvailabilityRule).filter(
                WeeklyAvailabilityRule.clinician_id == clinician_id,
                WeeklyAvailabilityRule.is_active == True,
            ).order_by(WeeklyAvailabilityRule.id).all()
        except SQLAlchemyError as e:
            raise self._fail("availability rules", e) from e
        return parse_rule_rows(rows)

    def get_exceptions(self, clinician_id: int, start_date: date_type, end_date: date_type) -> List[ExceptionRow]:
        """
        Get exceptions dated within [start_date, end_date].

        Soft-deleted exceptions are included: a deleted exception that
        references a rule is what cancels that rule's occurrence.
        """
        try:
            rows = self.db.query(AvailabilityException).filter(
                AvailabilityException.clinician_id == clinician_id,
                AvailabilityException.specific_date >= start_date,
                AvailabilityException.specific_date <= end_date,
            ).order_by(AvailabilityException.id).all()
        except SQLAlchemyError as e:
            raise self._fail("availability exceptions", e) from e
        return parse_exception_rows(rows)

    def get_appointments(self, clinician_id: int, start_date: date_type, end_date: date_type) -> List[AppointmentRow]:
        """Get scheduled appointments dated within [start_date, end_date]."""
        try:
            rows = self.db.query(Appointment).filter(
                Appointment.clinician_id == clinician_id,
                Appointment.date >= start_date,
                Appointment.date <= end_date,
                Appointment.status == APPOINTMENT_STATUS_SCHEDULED,
            ).order_by(Appointment.date, Appointment.start_time, Appointment.id).all()
        except SQLAlchemyError as e:
            raise self._fail("appointments", e) from e
        return parse_appointment_rows(rows)

    def get_client_names(self, client_ids: Iterable[int]) -> Dict[int, str]:
        ids = sorted(set(client_ids))
        if not ids:
            return {}
        try:
            clients = self.db.query(Client).filter(Client.id.in_(ids)).all()
        except SQLAlchemyError as e:
            raise self._fail("client names", e) from e
        return {client.id: client.display_name for client in clients}

    def get_settings(self, clinician_id: int) -> ScheduleSettings:
        """Get resolved settings; an unknown clinician gets the defaults."""
        clinician = self.get_clinician(clinician_id)
        if clinician is None:
            return ScheduleSettings()
        return ScheduleSettingsService.resolve(clinician.settings)

    def update_settings(self, clinician_id: int, updates: Mapping[str, Any]) -> Optional[ScheduleSettings]:
        """
        Apply a settings update and persist it.

        Returns:
            The stored settings, or None if the clinician does not exist

        Raises:
            ValidationError: If an updated field is invalid
            DataFetchError: If the write fails
        """
        clinician = self.get_clinician(clinician_id)
        if clinician is None:
            return None

        settings = ScheduleSettingsService.prepare_for_save(clinician.settings, updates)
        clinician.set_validated_settings(settings)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("settings update", e) from e
        logger.info(f"Updated schedule settings for clinician {clinician_id}: {clinician.settings}")
        return clinician.get_validated_settings()

    def create_exception(
        self,
        clinician_id: int,
        specific_date: date_type,
        original_rule_id: Optional[int] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        is_deleted: bool = False,
    ) -> ExceptionRow:
        """
        Record a per-date exception.

        Raises:
            ValueError: If the referenced rule is not the clinician's, or the
                window breaks an exception invariant
            DataFetchError: If the write fails
        """
        if original_rule_id is not None:
            try:
                rule = self.db.query(WeeklyAvailabilityRule).filter(
                    WeeklyAvailabilityRule.id == original_rule_id,
                    WeeklyAvailabilityRule.clinician_id == clinician_id,
                ).first()
            except SQLAlchemyError as e:
                raise self._fail("availability rule", e) from e
            if rule is None:
                raise ValueError(f"Rule {original_rule_id} does not belong to clinician {clinician_id}")
        elif not is_deleted and (start_time is None or end_time is None):
            raise ValueError("A standalone exception needs both start_time and end_time")

        # Validate before writing so a bad window never reaches the table
        try:
            parse_row(ExceptionRow, {
                "id": 0,
                "clinician_id": clinician_id,
                "specific_date": specific_date,
                "original_rule_id": original_rule_id,
                "start_time": start_time,
                "end_time": end_time,
                "is_deleted": is_deleted,
            })
        except InvariantViolation as e:
            raise ValueError(str(e)) from e

        exception = AvailabilityException(
            clinician_id=clinician_id,
            specific_date=specific_date,
            original_rule_id=original_rule_id,
            start_time=start_time,
            end_time=end_time,
            is_deleted=is_deleted,
        )
        try:
            self.db.add(exception)
            self.db.commit()
            self.db.refresh(exception)
        except SQLAlchemyError as e:
            raise self._fail("exception insert", e) from e

        logger.info(
            f"Created availability exception {exception.id} for clinician {clinician_id} "
            f"on {specific_date} (rule={original_rule_id}, deleted={is_deleted})"
        )
        return parse_row(ExceptionRow, exception)

    def deactivate_rule(self, clinician_id: int, rule_id: int) -> bool:
        """
        Remove a weekly rule.

        A rule that exceptions still reference is cleared (is_active=False)
        rather than deleted so those exceptions keep a valid reference.

        Returns:
            False if the rule does not exist for this clinician
        """
        try:
            rule = self.db.query(WeeklyAvailabilityRule).filter(
                WeeklyAvailabilityRule.id == rule_id,
                WeeklyAvailabilityRule.clinician_id == clinician_id,
            ).first()
            if rule is None:
                return False

            referenced = self.db.query(AvailabilityException.id).filter(
                AvailabilityException.original_rule_id == rule_id,
            ).first() is not None
            if referenced:
                rule.is_active = False
                logger.info(f"Cleared availability rule {rule_id} (referenced by exceptions)")
            else:
                self.db.delete(rule)
                logger.info(f"Deleted availability rule {rule_id}")
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("rule removal", e) from e
        return True

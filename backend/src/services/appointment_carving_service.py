"""
Appointment carving service.

Marks calendar sub-slots as booked. Carving is a render-time overlay only:
merged availability blocks are never shrunk or split by appointments.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from shared_types.calendar_grid import AppointmentLabel, SlotBooking
from shared_types.schedule_rows import AppointmentRow
from utils.datetime_utils import add_elapsed, local_to_instant

logger = logging.getLogger(__name__)

BookedInterval = Tuple[datetime, datetime, AppointmentRow]


class AppointmentCarvingService:
    """Service class for overlaying scheduled appointments on sub-slots."""

    @staticmethod
    def appointment_intervals(
        appointments: Iterable[AppointmentRow],
        tz: ZoneInfo,
    ) -> List[BookedInterval]:
        """
        Anchor scheduled appointments to instants in the clinician zone.

        Non-scheduled appointments are dropped. The result is ordered by
        (start, end, id).
        """
        intervals: List[BookedInterval] = []
        for appointment in appointments:
            if not appointment.is_scheduled:
                continue
            start = local_to_instant(appointment.date, appointment.start_time, tz)
            end = local_to_instant(appointment.date, appointment.end_time, tz)
            if start >= end:
                logger.debug(f"Appointment {appointment.id} has no real time on {appointment.date}; skipping")
                continue
            intervals.append((start, end, appointment))
        intervals.sort(key=lambda item: (item[0], item[1], item[2].id))
        return intervals

    @staticmethod
    def _label(
        item: BookedInterval,
        client_names: Dict[int, str],
    ) -> AppointmentLabel:
        start, end, appointment = item
        return AppointmentLabel(
            appointment_id=appointment.id,
            client_id=appointment.client_id,
            client_name=appointment.client_name or client_names.get(appointment.client_id, ""),
            appointment_type=appointment.type,
            start=start,
            end=end,
        )

    @staticmethod
    def carve(
        slot_starts: Sequence[datetime],
        slot_length: timedelta,
        booked: Sequence[BookedInterval],
        client_names: Optional[Dict[int, str]] = None,
    ) -> List[Optional[SlotBooking]]:
        """
        Work out which appointments occupy each sub-slot.

        A sub-slot [s, s + slot_length) is booked when an appointment overlaps
        it. The earliest-starting overlapping appointment is the slot's
        primary appointment. Every appointment, primary or not, is labeled on
        the first sub-slot it occupies; later sub-slots are unlabeled
        continuations. Appointments that overlap each other therefore all
        stay visible.

        Args:
            slot_starts: Sub-slot start instants in ascending order
            slot_length: Length of one sub-slot (real elapsed time)
            booked: Output of ``appointment_intervals``
            client_names: Optional client id to display name lookup

        Returns:
            One entry per sub-slot: a SlotBooking, or None when free
        """
        names = client_names or {}
        labeled: set[int] = set()
        result: List[Optional[SlotBooking]] = []

        for slot_start in slot_starts:
            slot_end = add_elapsed(slot_start, slot_length)
            covering = [item for item in booked if item[0] < slot_end and slot_start < item[1]]
            if not covering:
                result.append(None)
                continue

            new_labels = tuple(
                AppointmentCarvingService._label(item, names)
                for item in covering
                if item[2].id not in labeled
            )
            labeled.update(label.appointment_id for label in new_labels)

            primary_id = covering[0][2].id
            primary_label = next((label for label in new_labels if label.appointment_id == primary_id), None)
            if len(covering) > 1:
                logger.debug(
                    f"Slot {slot_start.isoformat()} is held by overlapping appointments "
                    f"{[item[2].id for item in covering]}"
                )
            result.append(SlotBooking(
                appointment_id=primary_id,
                is_start=primary_label is not None,
                label=primary_label,
                appointment_ids=tuple(item[2].id for item in covering),
                labels=new_labels,
            ))
        return result

"""
Schedule settings service for resolving and normalizing clinician settings.

Reading is forgiving: missing or malformed fields fall back to defaults one
field at a time. Saving is strict about types but never rejects a booking
window that is too short; it widens it instead.
"""

import logging
from datetime import date as date_type, timedelta
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from models.clinician import ScheduleSettings

logger = logging.getLogger(__name__)


class ScheduleSettingsService:
    """
    Service class for schedule settings operations.

    Provides defaults, save-time normalization and booking window checks.
    """

    @staticmethod
    def resolve(raw: Optional[Union[ScheduleSettings, Mapping[str, Any]]]) -> ScheduleSettings:
        """
        Resolve settings, falling back to defaults for absent or bad fields.

        Defaults are hour granularity, 1 day minimum notice and 90 days
        maximum. A bad field never discards the valid ones next to it.

        Args:
            raw: Stored settings document, a ScheduleSettings, or None

        Returns:
            Validated ScheduleSettings
        """
        if isinstance(raw, ScheduleSettings):
            return raw
        if not raw:
            return ScheduleSettings()
        if not isinstance(raw, Mapping):
            logger.warning(f"Schedule settings are not a mapping ({type(raw).__name__}); using defaults")
            return ScheduleSettings()

        values = {key: value for key, value in raw.items() if value is not None}
        try:
            return ScheduleSettings.model_validate(values)
        except ValidationError:
            pass

        kept: Dict[str, Any] = {}
        for key in ScheduleSettings.model_fields:
            if key not in values:
                continue
            try:
                ScheduleSettings.model_validate({key: values[key]})
            except ValidationError:
                logger.warning(f"Ignoring invalid schedule setting {key}={values[key]!r}; using default")
                continue
            kept[key] = values[key]
        return ScheduleSettings.model_validate(kept)

    @staticmethod
    def prepare_for_save(
        current: Optional[Union[ScheduleSettings, Mapping[str, Any]]],
        updates: Mapping[str, Any],
    ) -> ScheduleSettings:
        """
        Merge an update into the current settings and normalize for storage.

        If max_days_ahead ends up below min_days_ahead + 30 it is raised to
        exactly that value (min=10, max=20 is stored as max=40).

        Args:
            current: Settings currently stored (resolved leniently)
            updates: Fields to change; None values are ignored

        Returns:
            Settings ready to persist

        Raises:
            ValidationError: If an updated field is invalid
        """
        base = ScheduleSettingsService.resolve(current).model_dump()
        base.update({key: value for key, value in updates.items() if value is not None})
        settings = ScheduleSettings.model_validate(base)
        enforced = settings.with_enforced_booking_window()
        if enforced.max_days_ahead != settings.max_days_ahead:
            logger.info(
                f"Raising max_days_ahead from {settings.max_days_ahead} to {enforced.max_days_ahead} "
                f"(min_days_ahead={settings.min_days_ahead})"
            )
        return enforced

    @staticmethod
    def booking_window(settings: ScheduleSettings, today: date_type) -> Tuple[date_type, date_type]:
        """
        Get the (earliest, latest) dates a client may book, inclusive.

        ``today`` is the current date in the clinician's zone.
        """
        earliest = today + timedelta(days=settings.min_days_ahead)
        latest = today + timedelta(days=settings.max_days_ahead)
        return earliest, latest

    @staticmethod
    def is_date_bookable(settings: ScheduleSettings, day: date_type, today: date_type) -> bool:
        """Check if ``day`` falls inside the booking window."""
        earliest, latest = ScheduleSettingsService.booking_window(settings, today)
        return earliest <= day <= latest

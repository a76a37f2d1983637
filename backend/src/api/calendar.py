"""
Clinician calendar API endpoints.

Provides calendar functionality including:
- Day/week/month calendar grids in a viewer's time zone
- Schedule settings (granularity and booking window)
- Availability exception management
- Weekly rule removal
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import DataFetchError
from models import Clinician
from services import CalendarGridService, ScheduleDataService
from shared_types.calendar_grid import CalendarView
from utils.datetime_utils import (
    format_wall_time,
    parse_date_string,
    parse_wall_time,
    resolve_time_zone,
    today_in_zone,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response Models

class ScheduleSettingsResponse(BaseModel):
    """Response model for clinician schedule settings."""
    time_granularity: str
    min_days_ahead: int
    max_days_ahead: int


class ScheduleSettingsRequest(BaseModel):
    """Request model for updating schedule settings; omitted fields are kept."""
    time_granularity: Optional[str] = None
    min_days_ahead: Optional[int] = None
    max_days_ahead: Optional[int] = None


class AvailabilityExceptionRequest(BaseModel):
    """Request model for creating availability exceptions."""
    date: str  # Format: "YYYY-MM-DD"
    original_rule_id: Optional[int] = None  # None for a standalone window
    start_time: Optional[str] = None  # Format: "HH:MM"
    end_time: Optional[str] = None    # Format: "HH:MM"
    is_deleted: bool = False


class AvailabilityExceptionResponse(BaseModel):
    """Response model for availability exceptions."""
    exception_id: int
    date: str
    original_rule_id: Optional[int]
    start_time: Optional[str]
    end_time: Optional[str]
    is_deleted: bool


def _get_clinician_or_404(data_service: ScheduleDataService, clinician_id: int) -> Clinician:
    clinician = data_service.get_clinician(clinician_id)
    if not clinician:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clinician not found"
        )
    return clinician


def _unavailable(e: DataFetchError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Schedule data temporarily unavailable: {e}"
    )


@router.get("/clinicians/{clinician_id}/calendar",
           summary="Get calendar grid for a clinician")
def get_calendar(
    clinician_id: int,
    view: str = Query("week", description="day, week or month"),
    anchor_date: str = Query(..., description="Any date in the period (YYYY-MM-DD)"),
    display_time_zone: Optional[str] = Query(None, description="Viewer's IANA zone; defaults to the clinician's"),
    version: Optional[int] = Query(None, description="Request token echoed on the grid"),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Get the day, week or month grid for a clinician.

    Times are computed in the clinician's zone and shown in
    ``display_time_zone``.
    """
    try:
        calendar_view = CalendarView(view)
        anchor = parse_date_string(anchor_date)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid view or date (use day/week/month and YYYY-MM-DD)"
        )

    data_service = ScheduleDataService(db)
    grid_service = CalendarGridService()
    try:
        clinician = _get_clinician_or_404(data_service, clinician_id)
        start_date, end_date = grid_service.row_date_range(calendar_view, anchor)

        rules = data_service.get_rules(clinician_id)
        exceptions = data_service.get_exceptions(clinician_id, start_date, end_date)
        appointments = data_service.get_appointments(clinician_id, start_date, end_date)
        client_names = data_service.get_client_names(a.client_id for a in appointments)
    except DataFetchError as e:
        raise _unavailable(e)

    grid = grid_service.build(
        calendar_view,
        anchor,
        clinician_id,
        rules,
        exceptions,
        appointments,
        clinician.settings,
        display_time_zone or clinician.time_zone,
        clinician_time_zone=clinician.time_zone,
        version=version,
        client_names=client_names,
        today=today_in_zone(resolve_time_zone(clinician.time_zone)),
    )
    return grid.to_dict()


@router.get("/clinicians/{clinician_id}/schedule-settings",
           summary="Get schedule settings",
           response_model=ScheduleSettingsResponse)
def get_schedule_settings(
    clinician_id: int,
    db: Session = Depends(get_db)
) -> ScheduleSettingsResponse:
    """Get the clinician's resolved schedule settings (defaults fill gaps)."""
    data_service = ScheduleDataService(db)
    try:
        _get_clinician_or_404(data_service, clinician_id)
        settings = data_service.get_settings(clinician_id)
    except DataFetchError as e:
        raise _unavailable(e)
    return ScheduleSettingsResponse(**settings.model_dump())


@router.put("/clinicians/{clinician_id}/schedule-settings",
           summary="Update schedule settings",
           response_model=ScheduleSettingsResponse)
def update_schedule_settings(
    clinician_id: int,
    request: ScheduleSettingsRequest,
    db: Session = Depends(get_db)
) -> ScheduleSettingsResponse:
    """
    Update the clinician's schedule settings.

    A booking window shorter than 30 days past the minimum notice is widened
    rather than rejected.
    """
    data_service = ScheduleDataService(db)
    try:
        settings = data_service.update_settings(clinician_id, request.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid schedule settings: {e.errors()[0].get('msg', 'invalid value')}"
        )
    except DataFetchError as e:
        raise _unavailable(e)

    if settings is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clinician not found"
        )
    return ScheduleSettingsResponse(**settings.model_dump())


@router.post("/clinicians/{clinician_id}/availability-exceptions",
            summary="Create availability exception",
            response_model=AvailabilityExceptionResponse,
            status_code=status.HTTP_201_CREATED)
def create_availability_exception(
    clinician_id: int,
    request: AvailabilityExceptionRequest,
    db: Session = Depends(get_db)
) -> AvailabilityExceptionResponse:
    """
    Override one date of the clinician's schedule.

    With ``original_rule_id`` the exception rewrites (or, with
    ``is_deleted``, cancels) that rule's occurrence on the date; without it,
    it adds a standalone window.
    """
    try:
        specific_date = parse_date_string(request.date)
        start_time = parse_wall_time(request.start_time) if request.start_time else None
        end_time = parse_wall_time(request.end_time) if request.end_time else None
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    data_service = ScheduleDataService(db)
    try:
        _get_clinician_or_404(data_service, clinician_id)
        exception = data_service.create_exception(
            clinician_id,
            specific_date,
            original_rule_id=request.original_rule_id,
            start_time=start_time,
            end_time=end_time,
            is_deleted=request.is_deleted,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except DataFetchError as e:
        raise _unavailable(e)

    return AvailabilityExceptionResponse(
        exception_id=exception.id,
        date=exception.specific_date.isoformat(),
        original_rule_id=exception.original_rule_id,
        start_time=format_wall_time(exception.start_time) if exception.start_time else None,
        end_time=format_wall_time(exception.end_time) if exception.end_time else None,
        is_deleted=exception.is_deleted,
    )


@router.delete("/clinicians/{clinician_id}/availability-rules/{rule_id}",
              summary="Remove a weekly availability rule",
              status_code=status.HTTP_204_NO_CONTENT)
def delete_availability_rule(
    clinician_id: int,
    rule_id: int,
    db: Session = Depends(get_db)
) -> None:
    """Remove a weekly rule; rules referenced by exceptions are only cleared."""
    data_service = ScheduleDataService(db)
    try:
        removed = data_service.deactivate_rule(clinician_id, rule_id)
    except DataFetchError as e:
        raise _unavailable(e)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Availability rule not found"
        )

"""
Calendar refresh coordinator.

Loads the four calendar inputs (rules, exceptions, appointments, settings)
concurrently and publishes a grid only once all of them have resolved. Every
refresh carries a monotonically increasing version token; a result that
finishes after a newer request was issued is discarded (last request wins).
"""

import asyncio
import logging
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import date as date_type
from typing import Callable, Generator, Optional, TypeVar

from core.constants import DEFAULT_TIME_GRANULARITY
from core.database import get_db_context
from core.exceptions import DataFetchError
from services.calendar_grid_service import CalendarGridService
from services.schedule_data_service import ScheduleDataService, ScheduleRowStore
from shared_types.calendar_grid import CalendarGrid, CalendarView
from utils.datetime_utils import resolve_time_zone, today_in_zone

logger = logging.getLogger(__name__)

T = TypeVar('T')

RowStoreFactory = Callable[[], AbstractContextManager[ScheduleRowStore]]


@contextmanager
def default_row_store() -> Generator[ScheduleRowStore, None, None]:
    """Open a SQLAlchemy-backed row store on its own session."""
    with get_db_context() as db:
        yield ScheduleDataService(db)


@dataclass(frozen=True)
class CalendarRequest:
    clinician_id: Optional[int]
    view: CalendarView
    anchor_date: date_type
    display_time_zone: Optional[str] = None


class CalendarRefreshService:
    """
    Coordinates calendar refreshes for one renderer.

    Each store call runs in a worker thread with its own row store (and so
    its own session) from ``store_factory``.
    """

    def __init__(
        self,
        store_factory: RowStoreFactory = default_row_store,
        grid_service: Optional[CalendarGridService] = None,
    ):
        self.store_factory = store_factory
        self.grid_service = grid_service or CalendarGridService()
        self._latest_version: Optional[int] = None
        self._current: Optional[CalendarGrid] = None

    @property
    def latest_version(self) -> Optional[int]:
        return self._latest_version

    @property
    def current_grid(self) -> Optional[CalendarGrid]:
        """Most recently published grid (None before the first refresh lands)."""
        return self._current

    def is_stale(self, version: int) -> bool:
        return self._latest_version is not None and version < self._latest_version

    async def _fetch(self, fetch: Callable[[ScheduleRowStore], T]) -> T:
        def run() -> T:
            with self.store_factory() as store:
                return fetch(store)
        return await asyncio.to_thread(run)

    async def refresh(self, request: CalendarRequest, version: int) -> Optional[CalendarGrid]:
        """
        Rebuild the grid for ``request``.

        Args:
            request: What to show
            version: Token for this request; must increase across requests

        Returns:
            The published grid (READY, or ERROR if a fetch failed), or None if
            a newer request superseded this one
        """
        if self.is_stale(version):
            logger.debug(f"Ignoring refresh v{version}; v{self._latest_version} already requested")
            return None
        self._latest_version = version

        if request.clinician_id is None:
            grid = self.grid_service.build(
                request.view, request.anchor_date, None, [], [], [], None,
                request.display_time_zone, version=version,
            )
            return self._publish(grid, version)

        clinician_id = request.clinician_id
        start_date, end_date = self.grid_service.row_date_range(request.view, request.anchor_date)

        try:
            rules, exceptions, appointments, settings, clinician_zone = await asyncio.gather(
                self._fetch(lambda store: store.get_rules(clinician_id)),
                self._fetch(lambda store: store.get_exceptions(clinician_id, start_date, end_date)),
                self._fetch(lambda store: store.get_appointments(clinician_id, start_date, end_date)),
                self._fetch(lambda store: store.get_settings(clinician_id)),
                self._fetch(lambda store: store.get_clinician_time_zone(clinician_id)),
            )
            client_ids = [appointment.client_id for appointment in appointments]
            client_names = await self._fetch(lambda store: store.get_client_names(client_ids))
        except DataFetchError as e:
            logger.warning(f"Calendar refresh v{version} for clinician {clinician_id} failed: {e}")
            grid = CalendarGrid.pending(
                request.view,
                request.anchor_date,
                clinician_id,
                resolve_time_zone(request.display_time_zone).key,
                self._known_granularity(),
                version=version,
                error=str(e),
            )
            return self._publish(grid, version)

        today = today_in_zone(resolve_time_zone(clinician_zone or request.display_time_zone))
        grid = self.grid_service.build(
            request.view,
            request.anchor_date,
            clinician_id,
            rules,
            exceptions,
            appointments,
            settings,
            request.display_time_zone,
            clinician_time_zone=clinician_zone,
            version=version,
            client_names=client_names,
            today=today,
        )
        return self._publish(grid, version)

    def _known_granularity(self) -> str:
        if self._current is not None:
            return self._current.time_granularity
        return DEFAULT_TIME_GRANULARITY

    def loading_grid(self, request: CalendarRequest, version: int) -> CalendarGrid:
        """Placeholder grid shown while ``version`` is in flight."""
        return CalendarGrid.pending(
            request.view,
            request.anchor_date,
            request.clinician_id,
            resolve_time_zone(request.display_time_zone).key,
            self._known_granularity(),
            version=version,
        )

    def _publish(self, grid: CalendarGrid, version: int) -> Optional[CalendarGrid]:
        if self._latest_version is not None and version != self._latest_version:
            logger.info(f"Discarding calendar v{version}; v{self._latest_version} is newer")
            return None
        self._current = grid
        return grid

"""
Unit tests for CalendarRefreshService.

Uses in-memory row stores so the concurrency behaviour (all inputs resolved
before publishing, last request wins, failures surfacing as an error grid)
can be tested without a database.
"""

import asyncio
import threading
from contextlib import contextmanager
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from core.database import Base
from core.exceptions import DataFetchError
from models import Appointment, Client, Clinician, WeeklyAvailabilityRule
from services.calendar_refresh_service import CalendarRefreshService, CalendarRequest
from services.schedule_data_service import ScheduleDataService
from services.schedule_settings_service import ScheduleSettingsService
from shared_types.calendar_grid import CalendarView, CellState, GridStatus
from shared_types.schedule_rows import parse_appointment_rows, parse_rule_rows

MONDAY = date(2025, 1, 6)


class FakeRowStore:
    """Row store backed by plain dicts, keyed by clinician id."""

    def __init__(self, rules=None, appointments=None, settings=None, fail_on=None, gate=None, entered=None):
        self.rules = rules or {}
        self.appointments = appointments or {}
        self.settings = settings or {}
        self.fail_on = fail_on
        self.gate = gate
        self.entered = entered
        self.requested_ranges = []

    def _check(self, name):
        if self.fail_on == name:
            raise DataFetchError(f"Failed to load {name}", query=name)

    def get_rules(self, clinician_id):
        self._check("rules")
        if self.gate is not None and clinician_id == 1:
            self.entered.set()
            self.gate.wait(timeout=5)
        return parse_rule_rows(self.rules.get(clinician_id, []))

    def get_exceptions(self, clinician_id, start_date, end_date):
        self._check("exceptions")
        return []

    def get_appointments(self, clinician_id, start_date, end_date):
        self._check("appointments")
        self.requested_ranges.append((start_date, end_date))
        return parse_appointment_rows(self.appointments.get(clinician_id, []))

    def get_settings(self, clinician_id):
        self._check("settings")
        return ScheduleSettingsService.resolve(self.settings.get(clinician_id))

    def get_clinician_time_zone(self, clinician_id):
        return "America/Chicago"

    def get_client_names(self, client_ids):
        self._check("client names")
        return {client_id: f"Client {client_id}" for client_id in client_ids}


def factory_for(store):
    @contextmanager
    def open_store():
        yield store
    return open_store


def rule(rule_id, clinician_id, start="09:00", end="12:00"):
    return {"id": rule_id, "clinician_id": clinician_id, "day_of_week": 0, "start_time": start, "end_time": end}


def week_request(clinician_id):
    return CalendarRequest(clinician_id, CalendarView.WEEK, MONDAY, "America/Chicago")


def monday_cell(grid, hour):
    return next(cell for cell in grid.day(MONDAY).cells if cell.start.time() == time(hour))


class TestRefresh:
    """Test publishing behaviour."""

    @pytest.mark.asyncio
    async def test_refresh_builds_ready_grid(self):
        store = FakeRowStore(
            rules={1: [rule(1, 1)]},
            appointments={1: [{
                "id": 9, "client_id": 4, "clinician_id": 1, "date": MONDAY,
                "start_time": "10:00", "end_time": "11:00", "status": "scheduled", "type": "Intake",
            }]},
        )
        service = CalendarRefreshService(store_factory=factory_for(store))

        grid = await service.refresh(week_request(1), version=1)

        assert grid.status == GridStatus.READY
        assert grid.version == 1
        assert monday_cell(grid, 9).state == CellState.AVAILABLE
        assert monday_cell(grid, 10).state == CellState.BOOKED
        assert monday_cell(grid, 10).appointment.client_name == "Client 4"
        assert service.current_grid is grid

    @pytest.mark.asyncio
    async def test_fetch_range_covers_distant_clinician_zone(self):
        """Test that rows dated two days ahead in the clinician zone are fetched."""
        store = FakeRowStore()
        service = CalendarRefreshService(store_factory=factory_for(store))
        await service.refresh(CalendarRequest(1, CalendarView.WEEK, MONDAY, "Etc/GMT+12"), version=1)
        # Saturday 2025-01-11 at UTC-12 reaches into 2025-01-13 at UTC+14
        assert store.requested_ranges == [(date(2025, 1, 2), date(2025, 1, 14))]

    @pytest.mark.asyncio
    async def test_settings_drive_granularity(self):
        store = FakeRowStore(rules={1: [rule(1, 1)]}, settings={1: {"time_granularity": "half_hour"}})
        service = CalendarRefreshService(store_factory=factory_for(store))
        grid = await service.refresh(week_request(1), version=1)
        assert grid.time_granularity == "half_hour"
        assert len(grid.day(MONDAY).cells) == 32

    @pytest.mark.asyncio
    async def test_missing_clinician_skips_the_store(self):
        @contextmanager
        def no_store():
            raise AssertionError("store should not be opened")
            yield

        service = CalendarRefreshService(store_factory=no_store)
        grid = await service.refresh(week_request(None), version=1)

        assert grid.status == GridStatus.READY
        assert len(grid.days) == 7
        assert all(cell.state == CellState.UNAVAILABLE for column in grid.days for cell in column.cells)

    @pytest.mark.asyncio
    async def test_fetch_failure_publishes_error_grid(self):
        store = FakeRowStore(rules={1: [rule(1, 1)]}, fail_on="appointments")
        service = CalendarRefreshService(store_factory=factory_for(store))

        grid = await service.refresh(week_request(1), version=1)

        assert grid.status == GridStatus.ERROR
        assert grid.days == ()
        assert grid.month_days == ()
        assert "appointments" in grid.error
        assert service.current_grid is grid

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self):
        store = FakeRowStore(rules={1: [rule(1, 1)]}, fail_on="settings")
        service = CalendarRefreshService(store_factory=factory_for(store))
        assert (await service.refresh(week_request(1), version=1)).status == GridStatus.ERROR

        store.fail_on = None
        grid = await service.refresh(week_request(1), version=2)
        assert grid.status == GridStatus.READY


class TestVersioning:
    """Test that the latest request wins."""

    @pytest.mark.asyncio
    async def test_stale_version_is_ignored(self):
        service = CalendarRefreshService(store_factory=factory_for(FakeRowStore()))
        assert await service.refresh(week_request(1), version=5) is not None
        assert await service.refresh(week_request(1), version=3) is None
        assert service.current_grid.version == 5
        assert service.is_stale(4)
        assert not service.is_stale(5)

    @pytest.mark.asyncio
    async def test_slow_older_request_is_discarded(self):
        """Test that v1 finishing after v2 was issued never replaces v2's grid."""
        gate = threading.Event()
        entered = threading.Event()
        store = FakeRowStore(
            rules={1: [rule(1, 1)], 2: [rule(2, 2, "13:00", "17:00")]},
            gate=gate,
            entered=entered,
        )
        service = CalendarRefreshService(store_factory=factory_for(store))

        slow = asyncio.create_task(service.refresh(week_request(1), version=1))
        assert await asyncio.to_thread(entered.wait, 5)

        fast = await service.refresh(week_request(2), version=2)
        assert fast.clinician_id == 2

        gate.set()
        assert await slow is None
        assert service.current_grid is fast
        assert service.latest_version == 2


class TestLoadingGrid:
    """Test the placeholder shown while a refresh is in flight."""

    def test_loading_grid_has_no_cells(self):
        service = CalendarRefreshService(store_factory=factory_for(FakeRowStore()))
        grid = service.loading_grid(week_request(1), version=3)
        assert grid.status == GridStatus.LOADING
        assert grid.days == ()
        assert grid.version == 3
        assert grid.time_granularity == "hour"

    @pytest.mark.asyncio
    async def test_loading_grid_keeps_known_granularity(self):
        store = FakeRowStore(settings={1: {"time_granularity": "half_hour"}})
        service = CalendarRefreshService(store_factory=factory_for(store))
        await service.refresh(week_request(1), version=1)
        assert service.loading_grid(week_request(1), version=2).time_granularity == "half_hour"


class TestDatabaseBackedRefresh:
    """Test a refresh over real SQLAlchemy sessions, one per worker thread."""

    @pytest.fixture
    def file_session_factory(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path / 'calendar.db'}",
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        Base.metadata.create_all(bind=engine)
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        engine.dispose()

    @pytest.mark.asyncio
    async def test_refresh_from_database(self, file_session_factory):
        with file_session_factory() as db:
            clinician = Clinician(first_name="Dana", last_name="Reyes", time_zone="America/Chicago",
                                  settings={"time_granularity": "half_hour"})
            client = Client(first_name="Jordan", last_name="Lee", preferred_name="Jo")
            db.add_all([clinician, client])
            db.flush()
            db.add_all([
                WeeklyAvailabilityRule(clinician_id=clinician.id, day_of_week=0,
                                       start_time=time(9), end_time=time(12)),
                Appointment(client_id=client.id, clinician_id=clinician.id, date=MONDAY,
                            start_time=time(10), end_time=time(11), type="Therapy Session"),
            ])
            db.commit()
            clinician_id = clinician.id

        @contextmanager
        def open_store():
            with file_session_factory() as db:
                yield ScheduleDataService(db)

        service = CalendarRefreshService(store_factory=open_store)
        grid = await service.refresh(week_request(clinician_id), version=1)

        assert grid.status == GridStatus.READY
        assert grid.time_granularity == "half_hour"
        cells = {cell.start.time(): cell for cell in grid.day(MONDAY).cells}
        assert cells[time(9)].state == CellState.AVAILABLE
        assert cells[time(10)].state == CellState.BOOKED
        assert cells[time(10)].appointment.client_name == "Jo Lee"
        assert cells[time(10, 30)].position.value == "continuation"
        assert cells[time(11)].state == CellState.AVAILABLE

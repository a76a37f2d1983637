"""
Test configuration and shared fixtures for the therapy calendar test suite.

Uses an in-memory SQLite database so the suite runs without PostgreSQL.
Each test gets a fresh schema, so application code is free to commit.
"""

import os

# Point the application engine at SQLite before core.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date, time
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base

# Import all models to ensure they're registered with SQLAlchemy before any relationships are resolved
from models.clinician import Clinician
from models.client import Client
from models.availability_rule import WeeklyAvailabilityRule
from models.availability_exception import AvailabilityException
from models.appointment import Appointment


@pytest.fixture(scope="function")
def db_engine():
    """
    Create a fresh in-memory database for one test.

    StaticPool keeps the single in-memory connection alive for the whole
    test, including worker threads used by the refresh coordinator.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clinician(db_session) -> Clinician:
    """A clinician in Chicago with default settings."""
    clinician = Clinician(
        first_name="Dana",
        last_name="Reyes",
        email="dana.reyes@example.com",
        time_zone="America/Chicago",
        settings={},
    )
    db_session.add(clinician)
    db_session.commit()
    return clinician


@pytest.fixture
def therapy_client(db_session) -> Client:
    client = Client(first_name="Jordan", last_name="Lee", preferred_name="Jo")
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def monday_rule(db_session, clinician) -> WeeklyAvailabilityRule:
    """Mondays 09:00-12:00."""
    rule = WeeklyAvailabilityRule(
        clinician_id=clinician.id,
        day_of_week=0,
        start_time=time(9, 0),
        end_time=time(12, 0),
    )
    db_session.add(rule)
    db_session.commit()
    return rule


@pytest.fixture
def a_monday() -> date:
    return date(2025, 1, 6)

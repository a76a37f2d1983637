"""
Integration tests for the Alembic migration chain.

Runs every migration from scratch against a scratch SQLite file and checks
the result against the SQLAlchemy models.
"""

import pathlib

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from core.database import Base

ALEMBIC_INI = pathlib.Path(__file__).resolve().parents[2] / "alembic.ini"


@pytest.fixture
def migration_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'calendar.db'}"


@pytest.fixture
def alembic_cfg(migration_url) -> Config:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("sqlalchemy.url", migration_url)
    return cfg


class TestMigrations:
    """Test the migration chain against the models."""

    def test_upgrade_head_creates_model_tables(self, alembic_cfg, migration_url):
        command.upgrade(alembic_cfg, "head")

        engine = create_engine(migration_url)
        try:
            inspector = inspect(engine)
            tables = set(inspector.get_table_names())
            assert set(Base.metadata.tables) <= tables
            assert "alembic_version" in tables

            for name, table in Base.metadata.tables.items():
                columns = {column["name"] for column in inspector.get_columns(name)}
                assert columns == set(table.columns.keys()), name

            indexes = {index["name"] for index in inspector.get_indexes("availability_exceptions")}
            assert "idx_availability_exceptions_rule_date" in indexes
        finally:
            engine.dispose()

    def test_downgrade_base_drops_tables(self, alembic_cfg, migration_url):
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")

        engine = create_engine(migration_url)
        try:
            assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
        finally:
            engine.dispose()

"""
Shared fixtures: a file-backed SQLite database per test and source factories.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.taxsale.db.base import Base
from src.taxsale.db import models  # noqa: F401
from src.taxsale.models.source import (
    ScheduleFrequency,
    Source,
    SourceRegion,
    SourceSchedule,
    SourceType,
)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """SQLite file database shared by the worker threads of one test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'taxsale.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_source():
    """Factory for sources; manual schedule unless overridden."""
    def _make(source_id="src-1", collector_type="static", **overrides):
        values = dict(
            id=source_id,
            name=f"Source {source_id}",
            source_type=SourceType.COUNTY_WEBSITE,
            url=f"https://example.gov/{source_id}",
            region=SourceRegion(state="MD", county="St. Mary's"),
            collector_type=collector_type,
            schedule=SourceSchedule(frequency=ScheduleFrequency.MANUAL),
        )
        values.update(overrides)
        return Source(**values)
    return _make

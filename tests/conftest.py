"""
Pytest configuration and shared fixtures for all tests.
"""

import datetime as dt

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import surf_report.models  # noqa: F401  registers the tables
from surf_report.core.spots import get_spot
from surf_report.db import session as db_session
from surf_report.models import SensorReading, TideEvent, WeatherSnapshot

REPORT_DATE = dt.date(2024, 6, 15)


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every connection in the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    db_session.set_engine(engine)
    yield engine
    db_session.set_engine(None)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def spot():
    return get_spot("folly-beach")


@pytest.fixture
def report_date():
    return REPORT_DATE


@pytest.fixture
def make_reading():
    """Build an unsaved SensorReading; defaults describe a clean chest-high day."""

    def _make(**overrides) -> SensorReading:
        values = {
            "date": REPORT_DATE,
            "location": "folly-beach",
            "wave_height": "5.2 ft",
            "wave_period": "11 sec",
            "swell_direction": "ENE (68°)",
            "wind_speed": "8 mph",
            "wind_direction": "NW (315°)",
            "water_temp": "68°F",
        }
        values.update(overrides)
        return SensorReading(**values)

    return _make


@pytest.fixture
def weather_snapshot():
    return WeatherSnapshot(
        date=REPORT_DATE,
        location="folly-beach",
        conditions="Mostly Sunny",
        temperature="84°F",
        forecast="Mostly sunny, with a high near 84.",
        wind_speed="5 to 10 mph",
        wind_direction="NW",
    )


@pytest.fixture
def tide_events():
    return [
        TideEvent(date=REPORT_DATE, location="folly-beach", time=dt.time(6, 12), type="High", height=5.1),
        TideEvent(date=REPORT_DATE, location="folly-beach", time=dt.time(12, 30), type="Low", height=0.4),
        TideEvent(date=REPORT_DATE, location="folly-beach", time=dt.time(18, 45), type="High", height=5.6),
    ]

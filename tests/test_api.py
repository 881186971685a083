"""Tests for the HTTP API."""

import datetime as dt

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from surf_report import create_app
from surf_report.api import reports as reports_api
from surf_report.core.errors import ConfigurationError
from surf_report.models import SensorReading, SurfReport
from surf_report.services.narrative import NarrativeComposer, index_selector
from surf_report.services.orchestrator import ExhaustionPolicy, ReportOrchestrator, RetryPolicy
from surf_report.services.rating import offshore_rating
from surf_report.services.report_store import ReportStore


class StaticSensor:
    def __init__(self, session, wave_height):
        self.session = session
        self.wave_height = wave_height

    def refresh(self, spot, report_date, cancel=None):
        reading = self.session.exec(
            select(SensorReading).where(SensorReading.location == spot.id)
        ).first() or SensorReading(date=report_date, location=spot.id)
        reading.wave_height = self.wave_height
        reading.wave_period = "11 sec"
        reading.wind_speed = "8 mph"
        reading.wind_direction = "NW (315°)"
        reading.water_temp = "68°F"
        self.session.add(reading)
        self.session.commit()


@pytest.fixture
def client(engine):
    with TestClient(create_app()) as client:
        yield client


@pytest.fixture
def fake_pipeline(monkeypatch):
    def install(wave_height="5.2 ft", exhaustion=ExhaustionPolicy.FAIL):
        def build(session, client=None, **kwargs):
            return ReportOrchestrator(
                session=session,
                sensor=StaticSensor(session, wave_height),
                weather=None,
                tides=None,
                store=ReportStore(session),
                composer=NarrativeComposer(selector=index_selector(0)),
                rating_strategy=offshore_rating,
                retry=RetryPolicy(max_attempts=2, delay_seconds=0),
                exhaustion=exhaustion,
            )

        monkeypatch.setattr(reports_api, "build_orchestrator", build)

    return install


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_spots(client):
    ids = [spot["id"] for spot in client.get("/api/spots").json()["spots"]]
    assert {"folly-beach", "pawleys-island"} <= set(ids)


def test_generate_and_fetch(client, fake_pipeline, engine):
    fake_pipeline()
    response = client.post("/api/reports/generate", json={"location": "folly-beach"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["attempts"] == 1
    assert body["rating"] == 8

    latest = client.get("/api/reports/folly-beach")
    assert latest.status_code == 200
    assert latest.json()["wave_height"] == "5.2 ft"

    by_date = client.get(f"/api/reports/folly-beach/{body['date']}")
    assert by_date.json()["rating"] == 8

    history = client.get("/api/reports/folly-beach/history")
    assert len(history.json()) == 1

    with Session(engine) as session:
        assert len(session.exec(select(SurfReport)).all()) == 1


def test_generate_defaults_location(client, fake_pipeline):
    fake_pipeline()
    body = client.post("/api/reports/generate").json()
    assert body["location"] == "folly-beach"


def test_generate_exhausted_is_http_200(client, fake_pipeline):
    fake_pipeline(wave_height="N/A")
    response = client.post("/api/reports/generate", json={"location": "pawleys-island"})
    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "error": "No valid wave data after 2 attempts",
        "attempts": 2,
        "hasWeatherData": False,
        "hasTideData": False,
        "hasValidWaveData": False,
    }


def test_generate_configuration_error(client, monkeypatch):
    def broken(*args, **kwargs):
        raise ConfigurationError("Unknown rating strategy 'vibes'")

    monkeypatch.setattr(reports_api, "build_orchestrator", broken)
    body = client.post("/api/reports/generate", json={}).json()
    assert body == {"success": False, "error": "Unknown rating strategy 'vibes'"}


def test_unknown_location_is_404(client):
    assert client.post("/api/reports/generate", json={"location": "atlantis"}).status_code == 404
    assert client.get("/api/reports/atlantis").status_code == 404


def test_missing_report_is_404(client):
    assert client.get("/api/reports/folly-beach").status_code == 404
    assert client.get("/api/reports/folly-beach/2024-01-01").status_code == 404


def test_prune(client, engine):
    with Session(engine) as session:
        session.add(
            SurfReport(date=dt.date(2000, 1, 1), location="folly-beach", conditions="old", rating=3)
        )
        session.commit()
    body = client.post("/api/maintenance/prune").json()
    assert body["success"] is True
    assert body["deleted"]["surf_reports"] == 1


def test_logs_endpoint(client):
    client.get("/api/health")
    assert "logs" in client.get("/api/logs?limit=5").json()


def test_generate_database_failure_is_reported_as_json(client, monkeypatch):
    class LockedSensor:
        def refresh(self, spot, report_date, cancel=None):
            raise OperationalError("UPDATE surf_conditions", {}, Exception("database is locked"))

    def build(session, client=None, **kwargs):
        return ReportOrchestrator(
            session=session,
            sensor=LockedSensor(),
            weather=None,
            tides=None,
            store=ReportStore(session),
            composer=NarrativeComposer(selector=index_selector(0)),
            rating_strategy=offshore_rating,
            retry=RetryPolicy(max_attempts=3, delay_seconds=0),
        )

    monkeypatch.setattr(reports_api, "build_orchestrator", build)
    response = client.post("/api/reports/generate", json={"location": "folly-beach"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["attempts"] == 1
    assert "database is locked" in body["error"]


def test_logs_filter_by_location_and_run(client, fake_pipeline):
    fake_pipeline()
    client.post("/api/reports/generate", json={"location": "folly-beach"})

    logs = client.get("/api/logs", params={"location": "folly-beach", "limit": 500}).json()["logs"]
    started = [entry for entry in logs if entry["message"].startswith("Generating surf report for folly-beach")]
    assert started
    assert all(entry["location"] == "folly-beach" for entry in logs)

    run_id = started[0]["run_id"]
    run_logs = client.get("/api/logs", params={"run_id": run_id, "limit": 500}).json()["logs"]
    assert run_logs
    assert {entry["run_id"] for entry in run_logs} == {run_id}

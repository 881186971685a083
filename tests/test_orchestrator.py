"""Tests for the bounded-retry report pipeline."""

import datetime as dt

import httpx
import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from surf_report.core.cancel import CancelToken
from surf_report.core.errors import (
    ConfigurationError,
    PersistenceError,
    RunCancelled,
    UpstreamFetchError,
)
from surf_report.core.logging_config import current_run_context
from surf_report.core.spots import Spot
from surf_report.models import SensorReading, SurfReport, TideEvent, WeatherSnapshot
from surf_report.services.narrative import NarrativeComposer, fallback_candidates, index_selector
from surf_report.services.orchestrator import (
    ExhaustionPolicy,
    ReportOrchestrator,
    RetryPolicy,
    RetrySession,
    SessionState,
)
from surf_report.services.rating import offshore_rating
from surf_report.services.report_store import ReportStore

NOW = dt.datetime(2024, 6, 15, 14, 0, tzinfo=dt.timezone.utc)
REPORT_DATE = dt.date(2024, 6, 15)


def clock():
    return NOW


class FakeSensor:
    """Writes one reading per refresh, cycling through the given wave heights."""

    def __init__(self, session, heights, errors=()):
        self.session = session
        self.heights = list(heights)
        self.errors = dict(errors)
        self.calls = 0

    def refresh(self, spot, report_date, cancel=None):
        self.calls += 1
        if self.calls in self.errors:
            raise self.errors[self.calls]
        height = self.heights[min(self.calls, len(self.heights)) - 1]
        reading = self.session.exec(
            select(SensorReading)
            .where(SensorReading.date == report_date)
            .where(SensorReading.location == spot.id)
        ).first() or SensorReading(date=report_date, location=spot.id)
        reading.wave_height = height
        reading.wave_period = "11"
        reading.swell_direction = "ENE (68°)"
        reading.wind_speed = "8"
        reading.wind_direction = "NW"
        reading.water_temp = "68°F"
        reading.captured_at = dt.datetime(2024, 6, 15, 10, 40, tzinfo=dt.timezone.utc)
        self.session.add(reading)
        self.session.commit()
        return reading


class FailingAdapter:
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def refresh(self, spot, report_date, cancel=None):
        self.calls += 1
        raise self.error


class StaticWeather:
    def __init__(self, session, snapshot):
        self.session = session
        self.snapshot = snapshot

    def refresh(self, spot, report_date, cancel=None):
        self.session.add(self.snapshot)
        self.session.commit()
        return self.snapshot


class StaticTides:
    def __init__(self, session, events):
        self.session = session
        self.events = events

    def refresh(self, spot, report_date, cancel=None):
        self.session.add_all(self.events)
        self.session.commit()
        return self.events


def build(session, sensor, weather=None, tides=None, max_attempts=60, **kwargs):
    kwargs.setdefault("store", ReportStore(session))
    return ReportOrchestrator(
        session=session,
        sensor=sensor,
        weather=weather,
        tides=tides,
        composer=NarrativeComposer(selector=index_selector(0), clock=clock),
        rating_strategy=offshore_rating,
        retry=RetryPolicy(max_attempts=max_attempts, delay_seconds=0),
        clock=clock,
        **kwargs,
    )


def stored_reports(session):
    return session.exec(select(SurfReport)).all()


class TestRetryBound:
    @pytest.mark.parametrize("max_attempts", [1, 3, 60])
    def test_exactly_max_attempts(self, session, spot, max_attempts):
        sensor = FakeSensor(session, ["N/A"])
        result = build(session, sensor, max_attempts=max_attempts).run(spot)
        assert sensor.calls == max_attempts
        assert result.attempts == max_attempts
        assert result.state is SessionState.EXHAUSTED

    def test_stops_at_first_valid_reading(self, session, spot):
        sensor = FakeSensor(session, ["N/A", "MM", "4.3 ft", "9.9 ft"])
        result = build(session, sensor).run(spot)
        assert sensor.calls == 3
        assert result.attempts == 3
        assert stored_reports(session)[0].wave_height == "4.3 ft"

    def test_sensor_errors_count_as_attempts(self, session, spot):
        sensor = FakeSensor(
            session,
            ["5.2 ft"],
            errors={1: UpstreamFetchError("ndbc", "HTTP 503"), 2: httpx.ConnectTimeout("timeout")},
        )
        result = build(session, sensor).run(spot)
        assert result.success
        assert result.attempts == 3


def test_scenario_a_fail_policy_writes_nothing(session, spot):
    result = build(session, FakeSensor(session, ["N/A"])).run(spot)
    assert result.success is False
    assert result.attempts == 60
    assert stored_reports(session) == []
    assert result.to_response() == {
        "success": False,
        "error": "No valid wave data after 60 attempts",
        "attempts": 60,
        "hasWeatherData": False,
        "hasTideData": False,
        "hasValidWaveData": False,
    }


def test_scenario_a_degrade_policy_writes_fallback(session, spot, weather_snapshot, tide_events):
    orchestrator = build(
        session,
        FakeSensor(session, ["N/A"]),
        weather=StaticWeather(session, weather_snapshot),
        tides=StaticTides(session, tide_events),
        exhaustion=ExhaustionPolicy.DEGRADE,
    )
    result = orchestrator.run(spot)

    body = result.to_response()
    assert body["success"] is True
    assert body["degraded"] is True
    assert body["rating"] == 1
    assert (body["hasWeatherData"], body["hasTideData"], body["hasValidWaveData"]) == (True, True, False)

    [report] = stored_reports(session)
    assert report.degraded is True
    assert report.rating == 1
    assert report.wave_height == "N/A"
    assert report.wind_speed == "8"
    assert report.tide.startswith("High at 06:12")
    reading = session.exec(select(SensorReading)).first()
    assert report.conditions in fallback_candidates(reading, weather_snapshot)


def test_scenario_b_valid_on_first_attempt(session, spot, weather_snapshot, tide_events):
    orchestrator = build(
        session,
        FakeSensor(session, ["5.2 ft"]),
        weather=StaticWeather(session, weather_snapshot),
        tides=StaticTides(session, tide_events),
    )
    result = orchestrator.run(spot)

    assert result.to_response() == {
        "success": True,
        "message": "Surf report generated successfully",
        "date": "2024-06-15",
        "location": "folly-beach",
        "attempts": 1,
        "rating": 8,
    }
    [report] = stored_reports(session)
    assert report.date == REPORT_DATE
    assert 6 <= report.rating <= 9
    assert "Buoy reading taken at 6:40 AM EDT." in report.conditions
    assert "WEATHER:" in report.conditions
    assert "TIDES:" in report.conditions


def test_scenario_c_weather_failures_are_absorbed(session, spot):
    weather = FailingAdapter(UpstreamFetchError("nws", "HTTP 500"))
    tides = FailingAdapter(httpx.ConnectError("refused"))
    result = build(session, FakeSensor(session, ["5.2 ft"]), weather=weather, tides=tides).run(spot)

    assert result.success
    assert weather.calls == 1 and tides.calls == 1
    assert (result.has_weather_data, result.has_tide_data) == (False, False)
    [report] = stored_reports(session)
    assert "WEATHER:" not in report.conditions
    assert report.tide == "Tide data unavailable"


def test_rerun_replaces_the_days_report(session, spot):
    build(session, FakeSensor(session, ["2.0 ft"])).run(spot)
    build(session, FakeSensor(session, ["6.0 ft"])).run(spot)
    [report] = stored_reports(session)
    assert report.wave_height == "6.0 ft"


def test_explicit_report_date(session, spot):
    result = build(session, FakeSensor(session, ["3 ft"])).run(spot, dt.date(2024, 6, 1))
    assert result.date == dt.date(2024, 6, 1)
    assert stored_reports(session)[0].date == dt.date(2024, 6, 1)


class TestCancellation:
    def test_cancelled_before_start(self, session, spot):
        cancel = CancelToken()
        cancel.cancel()
        sensor = FakeSensor(session, ["5.2 ft"])
        with pytest.raises(RunCancelled):
            build(session, sensor, cancel=cancel).run(spot)
        assert sensor.calls == 0
        assert stored_reports(session) == []

    def test_cancelled_between_attempts(self, session, spot):
        cancel = CancelToken()

        class CancellingSensor(FakeSensor):
            def refresh(self, spot, report_date, cancel_token=None):
                reading = super().refresh(spot, report_date, cancel_token)
                if self.calls == 2:
                    cancel.cancel()
                return reading

        sensor = CancellingSensor(session, ["N/A"])
        with pytest.raises(RunCancelled):
            build(session, sensor, cancel=cancel, exhaustion=ExhaustionPolicy.DEGRADE).run(spot)
        assert sensor.calls == 2
        assert stored_reports(session) == []


def test_persistence_failure_is_reported(session, spot):
    class BrokenStore:
        def upsert(self, report):
            raise PersistenceError("Failed to store surf report: database is locked")

    result = build(session, FakeSensor(session, ["5.2 ft"]), store=BrokenStore()).run(spot)
    assert result.success is False
    assert result.to_response()["error"].startswith("Failed to store surf report")


def test_stale_write_is_still_a_success(session, spot):
    later = SurfReport(
        date=REPORT_DATE,
        location=spot.id,
        conditions="Written by a later run.",
        rating=5,
        generated_at=dt.datetime(2024, 6, 15, 15, 0, tzinfo=dt.timezone.utc),
    )
    ReportStore(session).upsert(later)
    result = build(session, FakeSensor(session, ["5.2 ft"])).run(spot)
    assert result.success
    assert result.stored is False
    assert stored_reports(session)[0].conditions == "Written by a later run."


class TestPolicies:
    def test_parse_exhaustion_policy(self):
        assert ExhaustionPolicy.parse("DEGRADE") is ExhaustionPolicy.DEGRADE
        assert ExhaustionPolicy.parse(ExhaustionPolicy.FAIL) is ExhaustionPolicy.FAIL
        with pytest.raises(ConfigurationError):
            ExhaustionPolicy.parse("shrug")

    def test_retry_policy_validation(self):
        with pytest.raises(ConfigurationError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ConfigurationError):
            RetryPolicy(delay_seconds=-1)

    def test_retry_session_states(self):
        retry = RetrySession(max_attempts=2, delay_seconds=0)
        assert retry.state is SessionState.IDLE
        with pytest.raises(RuntimeError):
            retry.next_attempt()
        retry.start()
        assert retry.next_attempt() == 1
        assert not retry.exhausted
        retry.next_attempt()
        assert retry.exhausted


def test_weather_and_tide_rows_are_read_back(session, spot, weather_snapshot, tide_events):
    session.add(weather_snapshot)
    session.add_all(tide_events)
    session.commit()
    result = build(session, FakeSensor(session, ["5.2 ft"])).run(spot)
    assert result.has_weather_data and result.has_tide_data
    assert len(session.exec(select(TideEvent)).all()) == 3
    assert session.exec(select(WeatherSnapshot)).first().conditions == "Mostly Sunny"


class TestDatabaseFailures:
    @pytest.mark.parametrize(
        "error",
        [
            OperationalError("UPDATE surf_conditions", {}, Exception("database is locked")),
            PersistenceError("Failed to store buoy reading: database is locked"),
        ],
    )
    def test_sensor_write_failure_ends_the_run(self, session, spot, error):
        sensor = FailingAdapter(error)
        result = build(session, sensor, exhaustion=ExhaustionPolicy.DEGRADE).run(spot)

        assert sensor.calls == 1
        assert result.success is False
        assert result.state is SessionState.FAILED
        assert "database is locked" in result.to_response()["error"]
        assert stored_reports(session) == []

    def test_weather_and_tide_write_failures_are_absorbed(self, session, spot):
        weather = FailingAdapter(PersistenceError("Failed to store weather snapshot: disk full"))
        tides = FailingAdapter(OperationalError("DELETE FROM tide_data", {}, Exception("disk full")))
        result = build(session, FakeSensor(session, ["5.2 ft"]), weather=weather, tides=tides).run(spot)

        assert result.success
        assert (result.has_weather_data, result.has_tide_data) == (False, False)
        [report] = stored_reports(session)
        assert report.tide == "Tide data unavailable"


def test_tide_phase_uses_the_spots_timezone(session):
    pacific = Spot(
        id="huntington",
        name="Huntington Beach",
        buoy_id="46253",
        tide_station_id="9410660",
        latitude=33.655,
        longitude=-118.005,
        timezone="America/Los_Angeles",
    )
    noon_pdt = dt.datetime(2024, 6, 15, 19, 0, tzinfo=dt.timezone.utc)
    events = [
        TideEvent(date=REPORT_DATE, location=pacific.id, time=dt.time(6, 12), type="High", height=5.1),
        TideEvent(date=REPORT_DATE, location=pacific.id, time=dt.time(12, 30), type="Low", height=0.4),
        TideEvent(date=REPORT_DATE, location=pacific.id, time=dt.time(18, 45), type="High", height=5.6),
    ]
    orchestrator = ReportOrchestrator(
        session=session,
        sensor=FakeSensor(session, ["5.2 ft"]),
        weather=None,
        tides=StaticTides(session, events),
        store=ReportStore(session),
        composer=NarrativeComposer(selector=index_selector(0), clock=lambda: noon_pdt),
        rating_strategy=offshore_rating,
        retry=RetryPolicy(max_attempts=1, delay_seconds=0),
        clock=lambda: noon_pdt,
    )
    result = orchestrator.run(pacific)

    assert result.date == REPORT_DATE
    [report] = stored_reports(session)
    assert "Currently on an outgoing tide, dropping from the 5.1ft high to a 0.4ft low at 12:30." in report.conditions
    assert "incoming" not in report.conditions


class TestHistoricalWaveData:
    def test_degraded_report_borrows_the_last_valid_waves(self, session, spot, make_reading):
        session.add(
            make_reading(date=REPORT_DATE - dt.timedelta(days=2), surf_height="4.5-5.5 ft", wave_height="4.8 ft")
        )
        session.add(make_reading(date=REPORT_DATE - dt.timedelta(days=1), wave_height="MM"))
        session.commit()

        result = build(session, FakeSensor(session, ["N/A"]), max_attempts=2, exhaustion=ExhaustionPolicy.DEGRADE).run(spot)

        body = result.to_response()
        assert body["degraded"] is True
        assert body["rating"] == 1
        assert body["historicalDataDate"] == "2024-06-13"
        assert body["hasValidWaveData"] is False
        [report] = stored_reports(session)
        assert (report.wave_height, report.surf_height) == ("4.8 ft", "4.5-5.5 ft")
        assert report.wave_period == "11 sec"
        assert report.wind_speed == "8"
        assert report.conditions.endswith(
            "(Note: Wave sensors are currently offline, using rideable face data from 2024-06-13. "
            "Current wind and water conditions are up to date.)"
        )

    def test_degraded_report_without_history_keeps_placeholders(self, session, spot):
        result = build(session, FakeSensor(session, ["N/A"]), max_attempts=1, exhaustion=ExhaustionPolicy.DEGRADE).run(spot)
        assert "historicalDataDate" not in result.to_response()
        [report] = stored_reports(session)
        assert report.wave_height == "N/A"
        assert "Note:" not in report.conditions


def test_report_keeps_the_surf_height_it_was_rated_on(session, spot):
    class SurfHeightSensor(FakeSensor):
        def refresh(self, spot, report_date, cancel=None):
            reading = super().refresh(spot, report_date, cancel)
            reading.surf_height = "3.9-4.7 ft"
            self.session.add(reading)
            self.session.commit()
            return reading

    build(session, SurfHeightSensor(session, ["5.2 ft"])).run(spot)
    [report] = stored_reports(session)
    assert report.surf_height == "3.9-4.7 ft"


def test_run_binds_log_context(session, spot):
    seen = []

    class ContextSensor(FakeSensor):
        def refresh(self, spot, report_date, cancel=None):
            seen.append(current_run_context())
            return super().refresh(spot, report_date, cancel)

    result = build(session, ContextSensor(session, ["5.2 ft"])).run(spot)

    [context] = seen
    assert context["location"] == "folly-beach"
    assert context["report_date"] == "2024-06-15"
    assert context["run_id"] == result.run_id
    assert current_run_context() == {}

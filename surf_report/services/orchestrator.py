"""Bounded-retry pipeline that produces the daily surf report.

The buoy's wave sensors lag its wind sensors, so early-morning runs often see
``MM`` for wave height. The orchestrator keeps refreshing the reading until a
valid wave height arrives or the attempt budget runs out, then rates the
reading, composes the narrative and upserts the report.
"""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from surf_report.core.cancel import CancelToken
from surf_report.core.clock import Clock, as_utc, capture_time_label, local_today, utc_now
from surf_report.core.config import settings
from surf_report.core.errors import (
    ConfigurationError,
    DataUnavailable,
    PersistenceError,
    UpstreamFetchError,
)
from surf_report.core.logging_config import run_context
from surf_report.core.spots import Spot
from surf_report.models import NOT_AVAILABLE, SensorReading, SurfReport, TideEvent, WeatherSnapshot
from surf_report.services.buoy import BuoyService
from surf_report.services.history import HistoricalWaves, historical_waves
from surf_report.services.narrative import NarrativeComposer, Selector, tide_summary
from surf_report.services.rating import MIN_RATING, RatingStrategy, get_rating_strategy
from surf_report.services.report_store import ReportStore
from surf_report.services.tides import TideService
from surf_report.services.validity import is_valid
from surf_report.services.weather import WeatherService

logger = logging.getLogger(__name__)

# Errors an adapter may raise that only mean "no data this time".
_SOFT_ERRORS = (UpstreamFetchError, DataUnavailable, httpx.HTTPError)
# Weather and tides are optional, so failing to store them is absorbed too.
_CONTEXT_ERRORS = _SOFT_ERRORS + (PersistenceError, SQLAlchemyError)


class Adapter(Protocol):
    def refresh(self, spot: Spot, report_date: dt.date, cancel: CancelToken | None = None) -> Any:
        ...


class SessionState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class ExhaustionPolicy(str, Enum):
    """What to do when every attempt came back without a valid wave height."""

    FAIL = "fail"
    DEGRADE = "degrade"

    @classmethod
    def parse(cls, value: str | ExhaustionPolicy) -> ExhaustionPolicy:
        try:
            return cls(str(value.value if isinstance(value, cls) else value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown exhaustion policy '{value}'. Expected one of: fail, degrade"
            ) from None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 60
    delay_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ConfigurationError("delay_seconds cannot be negative")


@dataclass
class RetrySession:
    """Attempt bookkeeping for a single run."""

    max_attempts: int
    delay_seconds: float
    attempt: int = 0
    state: SessionState = SessionState.IDLE

    def start(self) -> None:
        self.state = SessionState.ATTEMPTING

    def next_attempt(self) -> int:
        if self.state is not SessionState.ATTEMPTING:
            raise RuntimeError(f"Cannot attempt from state {self.state.value}")
        self.attempt += 1
        return self.attempt

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def succeed(self) -> None:
        self.state = SessionState.SUCCEEDED

    def exhaust(self) -> None:
        self.state = SessionState.EXHAUSTED

    def fail(self) -> None:
        self.state = SessionState.FAILED


@dataclass
class RunResult:
    success: bool
    location: str
    date: dt.date
    attempts: int
    state: SessionState
    rating: int | None = None
    message: str | None = None
    error: str | None = None
    degraded: bool = False
    stored: bool = False
    has_weather_data: bool = False
    has_tide_data: bool = False
    has_valid_wave_data: bool = False
    historical_data_date: dt.date | None = None
    run_id: str | None = None
    report: SurfReport | None = field(default=None, repr=False)

    def to_response(self) -> dict[str, Any]:
        """JSON body returned by the generate endpoint and printed by the CLI."""

        body: dict[str, Any] = {"success": self.success}
        if self.success:
            body.update(
                message=self.message,
                date=self.date.isoformat(),
                location=self.location,
                attempts=self.attempts,
                rating=self.rating,
            )
            if not self.degraded:
                return body
            body["degraded"] = True
            if self.historical_data_date is not None:
                body["historicalDataDate"] = self.historical_data_date.isoformat()
        else:
            body.update(error=self.error, attempts=self.attempts)
        body.update(
            hasWeatherData=self.has_weather_data,
            hasTideData=self.has_tide_data,
            hasValidWaveData=self.has_valid_wave_data,
        )
        return body


class ReportOrchestrator:
    def __init__(
        self,
        session: Session,
        sensor: Adapter,
        weather: Adapter | None,
        tides: Adapter | None,
        store: ReportStore,
        composer: NarrativeComposer,
        rating_strategy: RatingStrategy,
        retry: RetryPolicy | None = None,
        exhaustion: ExhaustionPolicy = ExhaustionPolicy.FAIL,
        cancel: CancelToken | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.session = session
        self.sensor = sensor
        self.weather = weather
        self.tides = tides
        self.store = store
        self.composer = composer
        self.rating_strategy = rating_strategy
        self.retry = retry or RetryPolicy()
        self.exhaustion = ExhaustionPolicy.parse(exhaustion)
        self.cancel = cancel or CancelToken()
        self.clock = clock

    def run(self, spot: Spot, report_date: dt.date | None = None) -> RunResult:
        """Generate and store the report for ``spot``.

        Raises :class:`RunCancelled` if the cancel token fires; nothing is
        written in that case.
        """

        report_date = report_date or local_today(spot.timezone, self.clock)
        with run_context(
            run_id=uuid.uuid4().hex[:12], location=spot.id, report_date=report_date.isoformat()
        ) as context:
            result = self._run(spot, report_date)
            result.run_id = context["run_id"]
            return result

    def _run(self, spot: Spot, report_date: dt.date) -> RunResult:
        retry = RetrySession(self.retry.max_attempts, self.retry.delay_seconds)
        retry.start()
        logger.info(
            "Generating surf report for %s on %s (max %s attempts, %ss delay)",
            spot.id,
            report_date,
            retry.max_attempts,
            retry.delay_seconds,
        )

        while True:
            self.cancel.raise_if_cancelled()
            attempt = retry.next_attempt()
            try:
                reading = self._attempt(spot, report_date)
            except PersistenceError as exc:
                retry.fail()
                logger.error("Stopping run for %s on attempt %s: %s", spot.id, attempt, exc)
                return RunResult(
                    success=False,
                    location=spot.id,
                    date=report_date,
                    attempts=attempt,
                    state=retry.state,
                    error=str(exc),
                )
            if is_valid(reading):
                retry.succeed()
                logger.info(
                    "Valid wave height %s for %s on attempt %s", reading.wave_height, spot.id, attempt
                )
                break
            logger.info(
                "Attempt %s/%s for %s: no valid wave height (got %r)",
                attempt,
                retry.max_attempts,
                spot.id,
                reading.wave_height if reading else None,
            )
            if retry.exhausted:
                retry.exhaust()
                break
            self.cancel.wait(retry.delay_seconds)

        if retry.state is SessionState.SUCCEEDED:
            return self._complete(spot, report_date, reading, retry)
        return self._exhausted(spot, report_date, reading, retry)

    def _attempt(self, spot: Spot, report_date: dt.date) -> SensorReading | None:
        try:
            self.sensor.refresh(spot, report_date, self.cancel)
        except _SOFT_ERRORS as exc:
            logger.info("Sensor refresh for %s failed: %s", spot.id, exc)
        except PersistenceError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"Failed to store buoy reading: {exc}") from exc

        try:
            return self.session.exec(
                select(SensorReading)
                .where(SensorReading.date == report_date)
                .where(SensorReading.location == spot.id)
            ).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"Failed to read buoy reading: {exc}") from exc

    def _refresh_context(self, spot: Spot, report_date: dt.date) -> None:
        for name, adapter in (("weather", self.weather), ("tides", self.tides)):
            if adapter is None:
                continue
            try:
                adapter.refresh(spot, report_date, self.cancel)
            except _CONTEXT_ERRORS as exc:
                self.session.rollback()
                logger.warning("Continuing without fresh %s data for %s: %s", name, spot.id, exc)

    def _context(
        self, spot: Spot, report_date: dt.date
    ) -> tuple[WeatherSnapshot | None, list[TideEvent]]:
        try:
            weather = self.session.exec(
                select(WeatherSnapshot)
                .where(WeatherSnapshot.date == report_date)
                .where(WeatherSnapshot.location == spot.id)
            ).first()
            tides = self.session.exec(
                select(TideEvent)
                .where(TideEvent.date == report_date)
                .where(TideEvent.location == spot.id)
                .order_by(TideEvent.time)
            ).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Could not read weather or tides for %s: %s", spot.id, exc)
            return None, []
        return weather, list(tides)

    def _history(self, spot: Spot, report_date: dt.date) -> HistoricalWaves | None:
        try:
            return historical_waves(self.session, spot.id, report_date)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Could not look up earlier wave data for %s: %s", spot.id, exc)
            return None

    def _complete(
        self, spot: Spot, report_date: dt.date, reading: SensorReading, retry: RetrySession
    ) -> RunResult:
        self._refresh_context(spot, report_date)
        weather, tides = self._context(spot, report_date)
        rating = self.rating_strategy(reading)
        narrative = self.composer.compose(
            reading,
            weather,
            tides,
            rating,
            capture_time_label=capture_time_label(reading.captured_at, spot.timezone),
            now=self.clock(),
            timezone=spot.timezone,
        )
        report = SurfReport(
            date=report_date,
            location=spot.id,
            wave_height=reading.wave_height,
            surf_height=reading.surf_height,
            wave_period=reading.wave_period,
            swell_direction=reading.swell_direction,
            wind_speed=reading.wind_speed,
            wind_direction=reading.wind_direction,
            water_temp=reading.water_temp,
            tide=tide_summary(tides),
            conditions=narrative,
            rating=rating,
            generated_at=as_utc(self.clock()),
        )
        result = RunResult(
            success=True,
            location=spot.id,
            date=report_date,
            attempts=retry.attempt,
            state=retry.state,
            rating=rating,
            has_weather_data=weather is not None,
            has_tide_data=bool(tides),
            has_valid_wave_data=True,
            report=report,
        )
        return self._persist(report, result, "Surf report generated successfully")

    def _exhausted(
        self,
        spot: Spot,
        report_date: dt.date,
        reading: SensorReading | None,
        retry: RetrySession,
    ) -> RunResult:
        logger.info(
            "No valid wave data for %s after %s attempts; exhaustion policy is %s",
            spot.id,
            retry.attempt,
            self.exhaustion.value,
        )
        if self.exhaustion is ExhaustionPolicy.DEGRADE:
            self._refresh_context(spot, report_date)
        weather, tides = self._context(spot, report_date)
        result = RunResult(
            success=False,
            location=spot.id,
            date=report_date,
            attempts=retry.attempt,
            state=retry.state,
            has_weather_data=weather is not None,
            has_tide_data=bool(tides),
            has_valid_wave_data=False,
        )
        if self.exhaustion is ExhaustionPolicy.FAIL:
            result.error = f"No valid wave data after {retry.attempt} attempts"
            return result

        narrative = self.composer.compose(
            reading, weather, tides, MIN_RATING, now=self.clock(), timezone=spot.timezone
        )
        report = SurfReport(
            date=report_date,
            location=spot.id,
            wind_speed=reading.wind_speed if reading else NOT_AVAILABLE,
            wind_direction=reading.wind_direction if reading else NOT_AVAILABLE,
            water_temp=reading.water_temp if reading else NOT_AVAILABLE,
            tide=tide_summary(tides),
            conditions=narrative,
            rating=MIN_RATING,
            degraded=True,
            generated_at=as_utc(self.clock()),
        )
        history = self._history(spot, report_date)
        if history is not None:
            report.wave_height = history.wave_height
            report.surf_height = history.surf_height
            report.wave_period = history.wave_period
            report.swell_direction = history.swell_direction
            report.conditions = f"{narrative} {history.note}"
            result.historical_data_date = history.date
        result.success = True
        result.degraded = True
        result.rating = MIN_RATING
        result.report = report
        return self._persist(report, result, "Surf report generated with fallback data")

    def _persist(self, report: SurfReport, result: RunResult, message: str) -> RunResult:
        self.cancel.raise_if_cancelled()
        try:
            result.stored = self.store.upsert(report)
        except PersistenceError as exc:
            result.success = False
            result.error = str(exc)
            return result
        result.message = message if result.stored else f"{message}; a newer report was already stored"
        return result


def build_orchestrator(
    session: Session,
    client: httpx.Client | None = None,
    *,
    max_attempts: int | None = None,
    delay_seconds: float | None = None,
    exhaustion: str | ExhaustionPolicy | None = None,
    rating_strategy: str | None = None,
    selector: Selector | None = None,
    cancel: CancelToken | None = None,
    clock: Clock = utc_now,
) -> ReportOrchestrator:
    """Wire the production adapters, taking unset tunables from settings."""

    retry = RetryPolicy(
        max_attempts=max_attempts if max_attempts is not None else settings.report_max_attempts,
        delay_seconds=delay_seconds if delay_seconds is not None else settings.report_retry_delay_seconds,
    )
    return ReportOrchestrator(
        session=session,
        sensor=BuoyService(session, client=client),
        weather=WeatherService(session, client=client),
        tides=TideService(session, client=client),
        store=ReportStore(session),
        composer=NarrativeComposer(selector=selector, clock=clock, timezone=settings.report_timezone),
        rating_strategy=get_rating_strategy(rating_strategy or settings.rating_strategy),
        retry=retry,
        exhaustion=ExhaustionPolicy.parse(exhaustion or settings.report_exhaustion_policy),
        cancel=cancel or CancelToken(settings.run_deadline_seconds),
        clock=clock,
    )


__all__ = [
    "Adapter",
    "SessionState",
    "ExhaustionPolicy",
    "RetryPolicy",
    "RetrySession",
    "RunResult",
    "ReportOrchestrator",
    "build_orchestrator",
]

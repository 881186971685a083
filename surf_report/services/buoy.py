"""NDBC buoy adapter.

Downloads the station's ``realtime2`` text feed, converts the newest row to
display units and upserts it as the spot's :class:`SensorReading` for the day.
Wave columns are often ``MM`` (missing) in the newest row because the wave
sensors report less often than wind; those fields become ``"N/A"`` and the
orchestrator keeps retrying until they fill in.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from surf_report.core.cancel import CancelToken
from surf_report.core.clock import as_utc
from surf_report.core.config import settings
from surf_report.core.errors import PersistenceError, UpstreamFetchError
from surf_report.core.spots import Spot
from surf_report.models import NOT_AVAILABLE, SensorReading
from surf_report.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

METERS_TO_FEET = 3.28084
MPS_TO_MPH = 2.23694

# Column positions in the realtime2 standard meteorological file.
_COL_WDIR = 5
_COL_WSPD = 6
_COL_WVHT = 8
_COL_DPD = 9
_COL_MWD = 11
_COL_WTMP = 14

_COMPASS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


@dataclass
class BuoyObservation:
    """Newest row of a realtime2 feed in SI units; None where the buoy reported MM."""

    observed_at: dt.datetime
    wave_height_m: float | None = None
    dominant_period_s: float | None = None
    mean_wave_direction_deg: float | None = None
    wind_direction_deg: float | None = None
    wind_speed_mps: float | None = None
    water_temp_c: float | None = None


def _field(columns: list[str], index: int, missing: float) -> float | None:
    try:
        value = float(columns[index])
    except (IndexError, ValueError):
        return None
    if value == missing or not math.isfinite(value):
        return None
    return value


def parse_realtime2(text: str) -> BuoyObservation:
    """Parse the first data row (newest observation) of a realtime2 file."""

    rows = [line.split() for line in text.strip().splitlines() if line and not line.startswith("#")]
    if not rows:
        raise UpstreamFetchError("ndbc", "feed contained no observations")

    columns = rows[0]
    try:
        year, month, day, hour, minute = (int(part) for part in columns[:5])
        observed_at = dt.datetime(year, month, day, hour, minute, tzinfo=dt.timezone.utc)
    except ValueError as exc:
        raise UpstreamFetchError("ndbc", f"unreadable observation timestamp: {columns[:5]}") from exc

    return BuoyObservation(
        observed_at=observed_at,
        wave_height_m=_field(columns, _COL_WVHT, 99.0),
        dominant_period_s=_field(columns, _COL_DPD, 99.0),
        mean_wave_direction_deg=_field(columns, _COL_MWD, 999.0),
        wind_direction_deg=_field(columns, _COL_WDIR, 999.0),
        wind_speed_mps=_field(columns, _COL_WSPD, 99.0),
        water_temp_c=_field(columns, _COL_WTMP, 999.0),
    )


def compass_label(degrees: float) -> str:
    index = int(round(degrees / 22.5)) % 16
    return f"{_COMPASS[index]} ({degrees:.0f}°)"


def estimate_surf_height(wave_height_m: float, period_s: float) -> str:
    """Rough rideable face range from significant wave height, scaled by period."""

    feet = wave_height_m * METERS_TO_FEET
    if period_s >= 12:
        low, high = 0.6, 0.7
    elif period_s >= 8:
        low, high = 0.5, 0.6
    else:
        low, high = 0.4, 0.5
    cap = feet * 0.95
    face_min = min(round(feet * low * 2) / 2, cap)
    face_max = min(round(feet * high * 2) / 2, cap)
    if face_min == face_max:
        return f"{face_min:.1f} ft"
    return f"{face_min:.1f}-{face_max:.1f} ft"


def to_display_fields(obs: BuoyObservation) -> dict[str, str]:
    """Convert an observation to the display strings stored on SensorReading."""

    fields = {
        "wave_height": NOT_AVAILABLE,
        "surf_height": NOT_AVAILABLE,
        "wave_period": NOT_AVAILABLE,
        "swell_direction": NOT_AVAILABLE,
        "wind_speed": NOT_AVAILABLE,
        "wind_direction": NOT_AVAILABLE,
        "water_temp": NOT_AVAILABLE,
    }
    if obs.wave_height_m is not None:
        fields["wave_height"] = f"{obs.wave_height_m * METERS_TO_FEET:.1f} ft"
        if obs.dominant_period_s is not None:
            fields["surf_height"] = estimate_surf_height(obs.wave_height_m, obs.dominant_period_s)
    if obs.dominant_period_s is not None:
        fields["wave_period"] = f"{obs.dominant_period_s:.0f} sec"
    if obs.mean_wave_direction_deg is not None:
        fields["swell_direction"] = compass_label(obs.mean_wave_direction_deg)
    if obs.wind_direction_deg is not None:
        fields["wind_direction"] = compass_label(obs.wind_direction_deg)
    if obs.wind_speed_mps is not None:
        fields["wind_speed"] = f"{obs.wind_speed_mps * MPS_TO_MPH:.0f} mph"
    if obs.water_temp_c is not None:
        fields["water_temp"] = f"{obs.water_temp_c * 9 / 5 + 32:.0f}°F"
    return fields


class BuoyService:
    """Sensor adapter: refresh the day's SensorReading from the spot's buoy."""

    def __init__(self, session: Session, client: httpx.Client | None = None) -> None:
        self.session = session
        self.http = UpstreamClient("ndbc", client=client)

    def fetch_observation(self, buoy_id: str, cancel: CancelToken | None = None) -> BuoyObservation:
        url = f"{settings.ndbc_base_url.rstrip('/')}/{buoy_id}.txt"
        response = self.http.get(url, cancel=cancel)
        return parse_realtime2(response.text)

    def refresh(
        self, spot: Spot, report_date: dt.date, cancel: CancelToken | None = None
    ) -> SensorReading:
        obs = self.fetch_observation(spot.buoy_id, cancel=cancel)
        fields = to_display_fields(obs)
        logger.info(
            "Buoy %s observation at %s: wave_height=%s period=%s wind=%s %s",
            spot.buoy_id,
            obs.observed_at.isoformat(),
            fields["wave_height"],
            fields["wave_period"],
            fields["wind_speed"],
            fields["wind_direction"],
        )

        reading = self.session.exec(
            select(SensorReading)
            .where(SensorReading.date == report_date)
            .where(SensorReading.location == spot.id)
        ).first()
        if reading is None:
            reading = SensorReading(date=report_date, location=spot.id)
        for name, value in fields.items():
            setattr(reading, name, value)
        reading.buoy_id = spot.buoy_id
        reading.captured_at = as_utc(obs.observed_at)
        reading.updated_at = dt.datetime.now(dt.timezone.utc)
        try:
            self.session.add(reading)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to store buoy reading for %s on %s", spot.id, report_date, exc_info=True)
            raise PersistenceError(f"Failed to store buoy reading: {exc}") from exc
        self.session.refresh(reading)
        return reading

    def close(self) -> None:
        self.http.close()


__all__ = [
    "BuoyObservation",
    "BuoyService",
    "parse_realtime2",
    "compass_label",
    "estimate_surf_height",
    "to_display_fields",
]

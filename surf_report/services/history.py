"""Most recent earlier wave data for a spot.

When the buoy's wave sensors stay offline the report borrows the last
measured swell instead of printing ``N/A``. Both the raw readings and the
stored reports are searched, and whichever is newer wins.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass

from sqlmodel import Session, select

from surf_report.models import NOT_AVAILABLE, SensorReading, SurfReport
from surf_report.services.validity import is_valid

logger = logging.getLogger(__name__)

# How many earlier rows to inspect before giving up; rows are newest first.
_SCAN_LIMIT = 30


@dataclass(frozen=True)
class HistoricalWaves:
    date: dt.date
    wave_height: str
    surf_height: str
    wave_period: str
    swell_direction: str
    source: str

    @property
    def note(self) -> str:
        return (
            f"(Note: Wave sensors are currently offline, using rideable face data from "
            f"{self.date.isoformat()}. Current wind and water conditions are up to date.)"
        )


def _first_valid(session: Session, model, location: str, before: dt.date):
    rows = session.exec(
        select(model)
        .where(model.location == location)
        .where(model.date < before)
        .where(model.wave_height != NOT_AVAILABLE)
        .order_by(model.date.desc())
        .limit(_SCAN_LIMIT)
    ).all()
    return next((row for row in rows if is_valid(row)), None)


def latest_valid_reading(session: Session, location: str, before: dt.date) -> SensorReading | None:
    return _first_valid(session, SensorReading, location, before)


def latest_valid_report(session: Session, location: str, before: dt.date) -> SurfReport | None:
    return _first_valid(session, SurfReport, location, before)


def historical_waves(session: Session, location: str, before: dt.date) -> HistoricalWaves | None:
    """Wave fields from the newest valid reading or report dated before ``before``."""

    candidates = [
        (row, source)
        for row, source in (
            (latest_valid_reading(session, location, before), "reading"),
            (latest_valid_report(session, location, before), "report"),
        )
        if row is not None
    ]
    if not candidates:
        logger.info("No earlier wave data for %s before %s", location, before)
        return None

    row, source = max(candidates, key=lambda candidate: candidate[0].date)
    logger.info("Using wave data for %s from %s %s", location, source, row.date)
    return HistoricalWaves(
        date=row.date,
        wave_height=row.wave_height,
        surf_height=row.surf_height,
        wave_period=row.wave_period,
        swell_direction=row.swell_direction,
        source=source,
    )


__all__ = ["HistoricalWaves", "historical_waves", "latest_valid_reading", "latest_valid_report"]

"""Keep the day's report measurements current between full generations.

Runs on a short schedule after the morning report exists. The narrative is
left alone; only the measured fields and the rating move.
"""

from __future__ import annotations

import datetime as dt
import logging

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from surf_report.core.cancel import CancelToken
from surf_report.core.errors import DataUnavailable, PersistenceError, UpstreamFetchError
from surf_report.core.spots import Spot
from surf_report.models import SensorReading, SurfReport
from surf_report.services.history import historical_waves
from surf_report.services.rating import RatingStrategy
from surf_report.services.validity import is_sentinel, is_valid

logger = logging.getLogger(__name__)

WAVE_FIELDS = ("wave_height", "surf_height", "wave_period", "swell_direction")
AMBIENT_FIELDS = ("wind_speed", "wind_direction", "water_temp")


def refresh_measurements(
    session: Session,
    spot: Spot,
    report_date: dt.date,
    rating_strategy: RatingStrategy,
    sensor=None,
    cancel: CancelToken | None = None,
) -> SurfReport:
    """Copy the newest buoy values into the existing report and re-rate it.

    When ``sensor`` is given it is refreshed first; a failed fetch falls back to
    the stored reading. Without a valid wave height only wind and water
    temperature are updated and the rating is left as it was. If the report
    itself has no wave data yet (a degraded morning run), the most recent earlier
    valid wave data for the spot is copied in instead.
    """

    report = session.exec(
        select(SurfReport).where(SurfReport.date == report_date).where(SurfReport.location == spot.id)
    ).first()
    if report is None:
        raise DataUnavailable(f"No surf report for {spot.id} on {report_date}")

    if sensor is not None:
        try:
            sensor.refresh(spot, report_date, cancel)
        except (UpstreamFetchError, httpx.HTTPError) as exc:
            session.rollback()
            logger.warning("Buoy refresh for %s failed, using stored reading: %s", spot.id, exc)

    reading = session.exec(
        select(SensorReading)
        .where(SensorReading.date == report_date)
        .where(SensorReading.location == spot.id)
    ).first()
    if reading is None:
        raise DataUnavailable(f"No buoy reading for {spot.id} on {report_date}")

    changed = []
    for name in AMBIENT_FIELDS:
        value = getattr(reading, name)
        if not is_sentinel(value) and value != getattr(report, name):
            setattr(report, name, value)
            changed.append(name)

    if is_valid(reading):
        for name in WAVE_FIELDS:
            value = getattr(reading, name)
            if value != getattr(report, name):
                setattr(report, name, value)
                changed.append(name)
        report.rating = rating_strategy(reading)
    elif is_valid(report):
        logger.info("No valid wave height for %s; keeping earlier wave fields", spot.id)
    else:
        history = historical_waves(session, spot.id, report_date)
        if history is not None:
            for name in WAVE_FIELDS:
                setattr(report, name, getattr(history, name))
            changed.extend(WAVE_FIELDS)
            logger.info("Filled wave fields for %s from %s data of %s", spot.id, history.source, history.date)

    report.updated_at = dt.datetime.now(dt.timezone.utc)
    try:
        session.add(report)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Failed to store refreshed report for %s on %s", spot.id, report_date, exc_info=True)
        raise PersistenceError(f"Failed to store refreshed report: {exc}") from exc
    session.refresh(report)
    logger.info(
        "Refreshed measurements for %s on %s: changed=%s rating=%s",
        spot.id,
        report_date,
        ",".join(changed) or "none",
        report.rating,
    )
    return report


__all__ = ["refresh_measurements", "WAVE_FIELDS", "AMBIENT_FIELDS"]

"""NOAA CO-OPS tide prediction adapter.

Fetches the high/low predictions for the report day and the following
``tide_days_ahead`` days and replaces whatever rows the spot had before.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, delete, select

from surf_report.core.cancel import CancelToken
from surf_report.core.config import settings
from surf_report.core.errors import PersistenceError, UpstreamFetchError
from surf_report.core.spots import Spot
from surf_report.models import TideEvent
from surf_report.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)

_TYPES = {"H": "High", "L": "Low", "HH": "High", "LL": "Low"}


def prediction_params(station_id: str, start: dt.date, days_ahead: int) -> dict[str, str]:
    end = start + dt.timedelta(days=days_ahead)
    return {
        "product": "predictions",
        "application": settings.app_name,
        "begin_date": start.strftime("%Y%m%d"),
        "end_date": end.strftime("%Y%m%d"),
        "datum": "MLLW",
        "station": station_id,
        "time_zone": "lst_ldt",
        "units": "english",
        "interval": "hilo",
        "format": "json",
    }


def parse_predictions(payload: dict[str, Any], location: str) -> list[TideEvent]:
    """Turn a CO-OPS ``predictions`` document into unsaved TideEvent rows."""

    if "error" in payload:
        message = payload["error"].get("message", "unknown error") if isinstance(payload["error"], dict) else payload["error"]
        raise UpstreamFetchError("tides", str(message))

    events: list[TideEvent] = []
    for item in payload.get("predictions") or []:
        try:
            stamp = dt.datetime.strptime(item["t"], "%Y-%m-%d %H:%M")
            height = float(item["v"])
            kind = _TYPES[item["type"].strip().upper()]
        except (KeyError, ValueError, AttributeError):
            logger.debug("Skipping malformed tide prediction %s", item)
            continue
        events.append(
            TideEvent(date=stamp.date(), location=location, time=stamp.time(), type=kind, height=height)
        )
    events.sort(key=lambda event: (event.date, event.time))
    return events


class TideService:
    """Tide adapter: replace a spot's tide predictions."""

    def __init__(self, session: Session, client: httpx.Client | None = None) -> None:
        self.session = session
        self.http = UpstreamClient("tides", client=client)

    def refresh(
        self, spot: Spot, report_date: dt.date, cancel: CancelToken | None = None
    ) -> list[TideEvent]:
        params = prediction_params(spot.tide_station_id, report_date, settings.tide_days_ahead)
        payload = self.http.get_json(settings.tides_api_url, params=params, cancel=cancel)
        events = parse_predictions(payload, spot.id)
        if not events:
            raise UpstreamFetchError("tides", f"no predictions for station {spot.tide_station_id}")

        try:
            self.session.exec(delete(TideEvent).where(TideEvent.location == spot.id))
            self.session.add_all(events)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to store tide predictions for %s", spot.id, exc_info=True)
            raise PersistenceError(f"Failed to store tide predictions: {exc}") from exc
        logger.info(
            "Stored %s tide predictions for %s (station %s)",
            len(events),
            spot.id,
            spot.tide_station_id,
        )
        return self.for_day(spot.id, report_date)

    def for_day(self, location: str, day: dt.date) -> list[TideEvent]:
        return list(
            self.session.exec(
                select(TideEvent)
                .where(TideEvent.location == location)
                .where(TideEvent.date == day)
                .order_by(TideEvent.time)
            ).all()
        )

    def close(self) -> None:
        self.http.close()


__all__ = ["TideService", "parse_predictions", "prediction_params"]

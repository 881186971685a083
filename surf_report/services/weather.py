"""National Weather Service adapter.

The forecast endpoint is discovered through ``/points/{lat},{lon}``; the first
forecast period is stored as the spot's weather snapshot for the day.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from surf_report.core.cancel import CancelToken
from surf_report.core.config import settings
from surf_report.core.errors import PersistenceError, UpstreamFetchError
from surf_report.core.spots import Spot
from surf_report.models import WeatherSnapshot
from surf_report.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def parse_forecast_period(payload: dict[str, Any]) -> dict[str, str | None]:
    """Extract the current period of an NWS forecast document."""

    try:
        period = payload["properties"]["periods"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamFetchError("nws", "forecast has no periods") from exc

    temperature = period.get("temperature")
    unit = period.get("temperatureUnit") or "F"
    return {
        "conditions": period.get("shortForecast"),
        "temperature": f"{temperature}°{unit}" if temperature is not None else None,
        "forecast": period.get("detailedForecast"),
        "wind_speed": period.get("windSpeed"),
        "wind_direction": period.get("windDirection"),
    }


class WeatherService:
    """Weather adapter: refresh the day's WeatherSnapshot for a spot."""

    def __init__(self, session: Session, client: httpx.Client | None = None) -> None:
        self.session = session
        self.http = UpstreamClient("nws", client=client, headers={"Accept": "application/geo+json"})

    def forecast_url(self, spot: Spot, cancel: CancelToken | None = None) -> str:
        base = settings.nws_base_url.rstrip("/")
        points = self.http.get_json(f"{base}/points/{spot.latitude:.4f},{spot.longitude:.4f}", cancel=cancel)
        try:
            return points["properties"]["forecast"]
        except (KeyError, TypeError) as exc:
            raise UpstreamFetchError("nws", f"no forecast URL for {spot.id}") from exc

    def refresh(
        self, spot: Spot, report_date: dt.date, cancel: CancelToken | None = None
    ) -> WeatherSnapshot:
        forecast = self.http.get_json(self.forecast_url(spot, cancel=cancel), cancel=cancel)
        fields = parse_forecast_period(forecast)
        logger.info(
            "Weather for %s: %s, %s", spot.id, fields["conditions"], fields["temperature"]
        )

        snapshot = self.session.exec(
            select(WeatherSnapshot)
            .where(WeatherSnapshot.date == report_date)
            .where(WeatherSnapshot.location == spot.id)
        ).first()
        if snapshot is None:
            snapshot = WeatherSnapshot(date=report_date, location=spot.id)
        for name, value in fields.items():
            setattr(snapshot, name, value)
        snapshot.updated_at = dt.datetime.now(dt.timezone.utc)
        try:
            self.session.add(snapshot)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to store weather for %s on %s", spot.id, report_date, exc_info=True)
            raise PersistenceError(f"Failed to store weather snapshot: {exc}") from exc
        self.session.refresh(snapshot)
        return snapshot

    def close(self) -> None:
        self.http.close()


__all__ = ["WeatherService", "parse_forecast_period"]

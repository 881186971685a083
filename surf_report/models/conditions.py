"""Upstream observation tables written by the provider adapters."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

NOT_AVAILABLE = "N/A"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _timestamp(**kwargs):
    """Timezone-aware UTC column; the type is pinned so every backend agrees."""

    return Field(sa_type=DateTime(timezone=True), **kwargs)


class SensorReading(SQLModel, table=True):
    """Latest buoy observation for a spot's calendar day, overwritten on every refresh."""

    __tablename__ = "surf_conditions"
    __table_args__ = (
        UniqueConstraint("date", "location", name="uq_surf_conditions_date_location"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    location: str = Field(max_length=64, index=True)
    wave_height: str = Field(default=NOT_AVAILABLE, max_length=32)
    surf_height: str = Field(default=NOT_AVAILABLE, max_length=32)
    wave_period: str = Field(default=NOT_AVAILABLE, max_length=32)
    swell_direction: str = Field(default=NOT_AVAILABLE, max_length=32)
    wind_speed: str = Field(default=NOT_AVAILABLE, max_length=32)
    wind_direction: str = Field(default=NOT_AVAILABLE, max_length=32)
    water_temp: str = Field(default=NOT_AVAILABLE, max_length=32)
    buoy_id: Optional[str] = Field(default=None, max_length=16)
    captured_at: Optional[dt.datetime] = _timestamp(default=None)
    updated_at: dt.datetime = _timestamp(default_factory=_utcnow, nullable=False)


class WeatherSnapshot(SQLModel, table=True):
    """Current forecast period from the weather service."""

    __tablename__ = "weather_data"
    __table_args__ = (
        UniqueConstraint("date", "location", name="uq_weather_data_date_location"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    location: str = Field(max_length=64, index=True)
    conditions: Optional[str] = Field(default=None, max_length=256)
    temperature: Optional[str] = Field(default=None, max_length=16)
    forecast: Optional[str] = None
    wind_speed: Optional[str] = Field(default=None, max_length=32)
    wind_direction: Optional[str] = Field(default=None, max_length=16)
    updated_at: dt.datetime = _timestamp(default_factory=_utcnow, nullable=False)


class TideEvent(SQLModel, table=True):
    """One predicted high or low tide."""

    __tablename__ = "tide_data"

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    location: str = Field(max_length=64, index=True)
    time: dt.time
    type: str = Field(max_length=8, description="High or Low")
    height: float
    height_unit: str = Field(default="ft", max_length=8)
    updated_at: dt.datetime = _timestamp(default_factory=_utcnow, nullable=False)

    @property
    def is_high(self) -> bool:
        return self.type.strip().lower() == "high"


__all__ = ["NOT_AVAILABLE", "SensorReading", "WeatherSnapshot", "TideEvent"]

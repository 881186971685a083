"""The daily surf report, one row per (date, location)."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from .conditions import NOT_AVAILABLE, _timestamp, _utcnow


class SurfReport(SQLModel, table=True):
    __tablename__ = "surf_reports"
    __table_args__ = (
        UniqueConstraint("date", "location", name="uq_surf_reports_date_location"),
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
    tide: str = Field(default="Tide data unavailable", sa_column=Column(Text, nullable=False))
    conditions: str = Field(sa_column=Column(Text, nullable=False))
    rating: int = Field(ge=1, le=10)
    degraded: bool = Field(default=False)
    generated_at: dt.datetime = _timestamp(default_factory=_utcnow, nullable=False, index=True)
    updated_at: dt.datetime = _timestamp(default_factory=_utcnow, nullable=False)


__all__ = ["SurfReport"]

"""Database models."""

from .conditions import NOT_AVAILABLE, SensorReading, TideEvent, WeatherSnapshot
from .report import SurfReport

__all__ = [
    "NOT_AVAILABLE",
    "SensorReading",
    "WeatherSnapshot",
    "TideEvent",
    "SurfReport",
]

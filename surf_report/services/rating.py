"""Surf quality rating strategies.

A strategy is a pure, total function from a :class:`SensorReading` to an integer
in ``[1, 10]``. Missing or unparseable fields count as 0 and nothing raises.

``offshore`` is the canonical strategy: it classifies the wind against the
coastline before bucketing by height. ``additive`` is the older flat scoring
table, kept selectable for comparison with historical reports.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Callable

from surf_report.core.errors import ConfigurationError
from surf_report.models import SensorReading
from surf_report.services.validity import effective_height, is_sentinel, parse_numeric

RatingStrategy = Callable[[SensorReading], int]

MIN_RATING = 1
MAX_RATING = 10


class WindExposure(str, Enum):
    OFFSHORE = "offshore"
    ONSHORE = "onshore"
    UNKNOWN = "unknown"


def wind_exposure(direction: str | None) -> WindExposure:
    """Classify a compass direction for an east-facing beach.

    Anything with a north or west component blows off the land; east or south
    components blow in from the sea.
    """

    if is_sentinel(direction):
        return WindExposure.UNKNOWN
    compass = str(direction).split("(")[0].strip().upper()
    if "N" in compass or "W" in compass:
        return WindExposure.OFFSHORE
    if "E" in compass or "S" in compass:
        return WindExposure.ONSHORE
    return WindExposure.UNKNOWN


def clamp_rating(score: float) -> int:
    if not math.isfinite(score):
        return MIN_RATING
    return max(MIN_RATING, min(MAX_RATING, int(round(score))))


def additive_rating(reading: SensorReading) -> int:
    """Flat table: start at 5 and add or subtract per height, period and wind band."""

    height, _ = effective_height(reading)
    period = parse_numeric(reading.wave_period)
    wind = parse_numeric(reading.wind_speed)

    score = 5.0
    if height >= 6:
        score += 4
    elif height >= 4:
        score += 3
    elif height >= 3:
        score += 2
    elif height >= 2:
        score += 1
    elif height < 1:
        score -= 2

    if period >= 12:
        score += 3
    elif period >= 10:
        score += 2
    elif period >= 8:
        score += 1
    elif period < 6:
        score -= 1

    if wind < 5:
        score += 1  # glassy
    elif wind > 15:
        score -= 2  # blown out

    return clamp_rating(score)


# Surface quality labels, best first.
CLEAN = "clean"
MODERATE = "moderate"
MODERATELY_POOR = "moderately poor"
POOR = "poor"
VERY_POOR = "very poor"

_CHEST_TO_HEAD = {CLEAN: 8, MODERATE: 7, MODERATELY_POOR: 6, POOR: 5, VERY_POOR: 4}
_OVERHEAD = {CLEAN: 10, MODERATE: 9, MODERATELY_POOR: 8, POOR: 8, VERY_POOR: 7}


def surface_quality(direction: str | None, wind_speed: float, period: float) -> str:
    exposure = wind_exposure(direction)
    quality = CLEAN
    if exposure is WindExposure.OFFSHORE:
        if wind_speed >= 20:
            quality = POOR
        elif wind_speed >= 15:
            quality = MODERATE
    elif exposure is WindExposure.ONSHORE:
        if wind_speed >= 18:
            quality = VERY_POOR
        elif wind_speed >= 12:
            quality = POOR
        elif wind_speed >= 8:
            quality = MODERATELY_POOR

    # Short-period swell is choppy regardless of wind.
    if period < 6:
        if quality == CLEAN:
            quality = MODERATE
        elif quality == MODERATE:
            quality = POOR
    return quality


def offshore_rating(reading: SensorReading) -> int:
    """Height buckets scored by the wind-classified surface quality."""

    height, _ = effective_height(reading)
    wind = parse_numeric(reading.wind_speed)
    period = parse_numeric(reading.wave_period)
    quality = surface_quality(reading.wind_direction, wind, period)

    if height <= 1.5:
        score = 2 if quality == CLEAN else 1
    elif height <= 3:
        score = 4 if quality == CLEAN else max(2, 4 - math.floor(wind / 10))
    elif height < 4.5:
        score = 6 if quality == CLEAN else 4
    elif height < 7:
        score = _CHEST_TO_HEAD[quality]
    else:
        score = _OVERHEAD[quality]
    return clamp_rating(score)


RATING_STRATEGIES: dict[str, RatingStrategy] = {
    "offshore": offshore_rating,
    "additive": additive_rating,
}
DEFAULT_STRATEGY = "offshore"


def get_rating_strategy(name: str | None = None) -> RatingStrategy:
    key = (name or DEFAULT_STRATEGY).strip().lower()
    try:
        return RATING_STRATEGIES[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown rating strategy '{key}'. Available: {', '.join(RATING_STRATEGIES)}"
        ) from None


__all__ = [
    "RatingStrategy",
    "MIN_RATING",
    "MAX_RATING",
    "WindExposure",
    "wind_exposure",
    "clamp_rating",
    "additive_rating",
    "offshore_rating",
    "surface_quality",
    "RATING_STRATEGIES",
    "DEFAULT_STRATEGY",
    "get_rating_strategy",
]

"""Decide whether a buoy reading carries a usable wave measurement."""

from __future__ import annotations

import math
import re
from typing import Any

from surf_report.models import SensorReading, SurfReport

SENTINELS = frozenset({"n/a", "", "null", "undefined"})

# Leading number only: "3.5 ft" -> 3.5, "2.5-3.0 ft" -> 2.5, "NW (315°)" -> no match.
_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")


def is_sentinel(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in SENTINELS


def parse_measurement(value: Any) -> float | None:
    """Return the leading numeric prefix of a display string, or None."""

    if is_sentinel(value):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return None
        number = float(match.group(1))
    if not math.isfinite(number):
        return None
    return number


def parse_numeric(value: Any, default: float = 0.0) -> float:
    """Like :func:`parse_measurement` but falls back to ``default``; never raises."""

    number = parse_measurement(value)
    return default if number is None else number


def is_valid(reading: SensorReading | SurfReport | None) -> bool:
    if reading is None:
        return False
    height = parse_measurement(reading.wave_height)
    return height is not None and height >= 0


def effective_height(reading: SensorReading) -> tuple[float, str]:
    """Rideable face height when the buoy adapter estimated one, else the raw wave height."""

    surf = parse_measurement(getattr(reading, "surf_height", None))
    if surf is not None and surf >= 0:
        return surf, reading.surf_height
    return parse_numeric(reading.wave_height), reading.wave_height


__all__ = [
    "SENTINELS",
    "is_sentinel",
    "parse_measurement",
    "parse_numeric",
    "is_valid",
    "effective_height",
]

"""Surf spot registry.

Each spot ties a report location id to the upstream stations that describe it.
Two South Carolina spots are built in; a YAML file named by
``SPOTS_CONFIG_PATH`` can add spots or override them::

    spots:
      - id: folly-beach
        name: Folly Beach, SC
        buoy_id: "41004"
        tide_station_id: "8665530"
        latitude: 32.6552
        longitude: -79.9403
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from surf_report.core.config import settings
from surf_report.core.errors import ConfigurationError, UnknownLocation

logger = logging.getLogger(__name__)


class Spot(BaseModel):
    """A surf location and the stations feeding its report."""

    id: str
    name: str
    buoy_id: str
    tide_station_id: str
    latitude: float
    longitude: float
    timezone: str = "America/New_York"


BUILTIN_SPOTS: tuple[Spot, ...] = (
    Spot(
        id="folly-beach",
        name="Folly Beach, SC",
        buoy_id="41004",  # Edisto
        tide_station_id="8665530",  # Charleston
        latitude=32.6552,
        longitude=-79.9403,
    ),
    Spot(
        id="pawleys-island",
        name="Pawleys Island, SC",
        buoy_id="41013",  # Frying Pan Shoals
        tide_station_id="8661070",  # Springmaid Pier
        latitude=33.4318,
        longitude=-79.1192,
    ),
)


def load_spots(path: str | Path | None = None) -> dict[str, Spot]:
    """Return the built-in spots merged with any spots declared in YAML."""

    spots = {spot.id: spot for spot in BUILTIN_SPOTS}
    config_path = path or settings.spots_config_path
    if not config_path:
        return spots

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Spots configuration not found: {config_path}")

    data: dict[str, Any] = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    for payload in data.get("spots", []):
        try:
            spot = Spot.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid spot in {config_path}: {exc}") from exc
        spots[spot.id] = spot
    logger.debug("Loaded %s spots from %s", len(spots), config_path)
    return spots


@lru_cache(maxsize=1)
def _registry() -> dict[str, Spot]:
    return load_spots()


def get_spot(spot_id: str | None = None) -> Spot:
    """Look up a spot, defaulting to the configured default location."""

    key = (spot_id or settings.default_location).strip().lower()
    spot = _registry().get(key)
    if spot is None:
        raise UnknownLocation(f"Invalid location: {key}")
    return spot


def list_spots() -> list[Spot]:
    return list(_registry().values())


__all__ = ["Spot", "BUILTIN_SPOTS", "load_spots", "get_spot", "list_spots"]

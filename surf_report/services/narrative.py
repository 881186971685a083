"""Template-based narrative for the daily surf report.

The composer never calls a random source directly. Wherever a section has
several interchangeable phrasings it asks an injected :data:`Selector` to pick
one, so tests can pin the output with :func:`index_selector` while production
uses :func:`clock_selector`.
"""

from __future__ import annotations

import random
from datetime import datetime, time
from typing import Callable, Iterable, Sequence

from surf_report.core.clock import Clock, to_local, utc_now
from surf_report.models import SensorReading, TideEvent, WeatherSnapshot
from surf_report.services.rating import WindExposure, wind_exposure
from surf_report.services.validity import (
    effective_height,
    is_sentinel,
    is_valid,
    parse_measurement,
    parse_numeric,
)

Selector = Callable[[Sequence[str]], str]

TIDE_UNAVAILABLE = "Tide data unavailable"


def clock_selector(clock: Clock = utc_now) -> Selector:
    """Pick by ``floor(epoch_ms / 100) mod n`` of the current time."""

    def select(candidates: Sequence[str]) -> str:
        tick = int(clock().timestamp() * 1000) // 100
        return candidates[tick % len(candidates)]

    return select


def seeded_selector(seed: int | str | None) -> Selector:
    rng = random.Random(seed)

    def select(candidates: Sequence[str]) -> str:
        return candidates[rng.randrange(len(candidates))]

    return select


def index_selector(index: int) -> Selector:
    def select(candidates: Sequence[str]) -> str:
        return candidates[index % len(candidates)]

    return select


# Rating tiers share one key set between openings and closings.
EPIC, GOOD, FAIR, FLAT = "epic", "good", "fair", "flat"


def rating_tier(rating: int) -> str:
    if rating >= 8:
        return EPIC
    if rating >= 6:
        return GOOD
    if rating >= 4:
        return FAIR
    return FLAT


OPENINGS: dict[str, tuple[str, ...]] = {
    EPIC: (
        "It's firing out there!",
        "Epic conditions on tap today!",
        "Drop what you're doing, it's pumping.",
        "The ocean is delivering today.",
    ),
    GOOD: (
        "Looking fun out there today.",
        "Decent waves rolling through.",
        "Solid conditions for a session.",
        "Worth a look this morning.",
    ),
    FAIR: (
        "Small but rideable conditions.",
        "Pretty mellow out there.",
        "Modest swell, still surfable.",
        "Gentle waves for a cruisy session.",
    ),
    FLAT: (
        "Pretty flat today.",
        "Not much happening out there.",
        "Minimal surf on offer.",
        "Low-energy day at the beach.",
    ),
}

CLOSINGS: dict[str, tuple[str, ...]] = {
    EPIC: (
        "Get out there. Clean faces, real size and cooperative wind do not line up often.",
        "This is the session people will be talking about. Make the time.",
        "Premium conditions. Grab your favorite board and go.",
    ),
    GOOD: (
        "Worth the paddle out if you've got the time. Expect plenty of quality rides.",
        "Should be a fun session. Nothing epic, but well worth getting wet.",
        "Bring the standard shortboard and enjoy a solid session.",
    ),
    FAIR: (
        "Good for beginners and longboarders. Bring the log and enjoy some mellow rides.",
        "Fine for a relaxed session or working on fundamentals.",
        "Not epic but rideable. A good day to teach a friend.",
    ),
    FLAT: (
        "Probably best to wait for the next swell.",
        "Check back tomorrow, it might improve.",
        "Not really worth it today unless you just want to get wet.",
    ),
}

FALLBACK_TEMPLATES: tuple[str, ...] = (
    "The wave sensors on the buoy aren't reporting right now, so there are no wave "
    "heights or periods to share. The buoy is still online: winds are {wind_speed} from "
    "the {wind_direction}, water temp is {water_temp}, and the weather is {weather}. "
    "Check the local surf cams or head down to the beach to see what's happening.",
    "Wave sensors are offline on the buoy today, so no wave data is available. Wind is "
    "{wind_speed} from the {wind_direction}, the water is {water_temp}, and it's "
    "{weather}. Your best bet is a look at the surf cams or a trip to the beach.",
    "The buoy's wave sensors are down at the moment. Wind readings show {wind_speed} "
    "from the {wind_direction}, water temperature is {water_temp}, and the weather is "
    "{weather}. Check other sources or scout it in person before paddling out.",
)


def candidates_for(section: str, rating: int) -> tuple[str, ...]:
    """Every phrasing the composer may pick for an ``opening`` or ``closing``."""

    table = {"opening": OPENINGS, "closing": CLOSINGS}.get(section)
    if table is None:
        raise ValueError(f"Unknown narrative section: {section}")
    return table[rating_tier(rating)]


def _weather_text(weather: WeatherSnapshot | None) -> str:
    if weather is None or is_sentinel(weather.conditions):
        return "weather data unavailable"
    return weather.conditions.strip().lower()


def _or_default(value: str | None, default: str) -> str:
    return default if is_sentinel(value) else str(value).strip()


def fallback_candidates(
    reading: SensorReading | None, weather: WeatherSnapshot | None
) -> tuple[str, ...]:
    """All fallback messages for a reading without usable wave data."""

    values = {
        "wind_speed": _or_default(reading.wind_speed if reading else None, "N/A"),
        "wind_direction": _or_default(reading.wind_direction if reading else None, "Variable"),
        "water_temp": _or_default(reading.water_temp if reading else None, "N/A"),
        "weather": _weather_text(weather),
    }
    return tuple(template.format(**values) for template in FALLBACK_TEMPLATES)


def tide_summary(tides: Iterable[TideEvent]) -> str:
    """One-line schedule stored in the report's ``tide`` column."""

    parts = [
        f"{_tide_label(event)} at {event.time.strftime('%H:%M')} ({_fmt(event.height)}{event.height_unit})"
        for event in sorted(tides, key=lambda event: event.time)
    ]
    return ", ".join(parts) if parts else TIDE_UNAVAILABLE


def tide_phase(tides: Sequence[TideEvent], now: time) -> str | None:
    """Describe the tide in progress at ``now``, or None outside the listed events."""

    ordered = sorted(tides, key=lambda event: event.time)
    for current, upcoming in zip(ordered, ordered[1:]):
        if current.time <= now < upcoming.time:
            start = f"{_fmt(current.height)}{current.height_unit}"
            end = f"{_fmt(upcoming.height)}{upcoming.height_unit}"
            at = upcoming.time.strftime("%H:%M")
            if current.is_high:
                return f"Currently on an outgoing tide, dropping from the {start} high to a {end} low at {at}."
            return f"Currently on an incoming tide, rising from the {start} low to a {end} high at {at}."
    return None


def wetsuit_advice(water_temp: float) -> str | None:
    if water_temp >= 75:
        return "warm enough for boardshorts or a spring suit"
    if water_temp >= 68:
        return "comfortable in a spring suit or thin full suit"
    if water_temp >= 60:
        return "cool enough that a 3/2mm full suit is the call"
    if water_temp >= 50:
        return "cold, so bring a 4/3mm suit and booties"
    if water_temp > 0:
        return "very cold, a 5/4mm suit with hood, gloves and booties is essential"
    return None


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"


def _tide_label(event: TideEvent) -> str:
    return "High" if event.is_high else "Low"


class NarrativeComposer:
    """Build the multi-section report text for one spot and day."""

    def __init__(
        self,
        selector: Selector | None = None,
        clock: Clock = utc_now,
        timezone: str = "America/New_York",
    ) -> None:
        self.clock = clock
        self.selector = selector or clock_selector(clock)
        self.timezone = timezone

    def compose(
        self,
        reading: SensorReading | None,
        weather: WeatherSnapshot | None,
        tides: Sequence[TideEvent],
        rating: int,
        capture_time_label: str | None = None,
        now: datetime | None = None,
        timezone: str | None = None,
    ) -> str:
        """Render the report text.

        ``timezone`` is the spot's zone; tide times are local wall-clock times
        there, so the current tide phase is judged on the same clock.
        """

        if not is_valid(reading):
            return self.selector(fallback_candidates(reading, weather))

        local_now = to_local(now or self.clock(), timezone or self.timezone)
        height, height_label = effective_height(reading)
        wind_speed = parse_numeric(reading.wind_speed)
        offshore = wind_exposure(reading.wind_direction) is WindExposure.OFFSHORE

        sections = [
            self._opening(rating, capture_time_label),
            "SURF: " + " ".join(
                part
                for part in (
                    self._size(reading, height, height_label, wind_speed, offshore),
                    self._period(reading),
                )
                if part
            ),
            "WIND: " + self._wind(reading, wind_speed, offshore),
        ]
        if weather is not None:
            sections.append("WEATHER: " + self._weather(reading, weather))
        if tides:
            sections.append("TIDES: " + self._tides(tides, height, local_now.time()))
        sections.append("OUTLOOK: " + self.selector(candidates_for("closing", rating)))
        return "\n\n".join(sections)

    def _opening(self, rating: int, capture_time_label: str | None) -> str:
        opening = self.selector(candidates_for("opening", rating))
        if capture_time_label:
            opening += f" Buoy reading taken at {capture_time_label}."
        return opening

    def _size(
        self,
        reading: SensorReading,
        height: float,
        height_label: str,
        wind_speed: float,
        offshore: bool,
    ) -> str:
        swell = _or_default(reading.swell_direction, "Variable")
        clean = wind_speed < 15 if offshore else wind_speed < 8

        if height >= 7:
            size = f"A powerful {swell} swell is stacking up overhead+ faces at {height_label}."
            quality = (
                "Faces are clean and well formed with plenty of push."
                if clean
                else "Wind texture makes it challenging, best left to experienced surfers."
            )
        elif height >= 4.5:
            size = f"A solid {swell} swell is delivering chest-to-head high faces at {height_label}."
            quality = (
                "The faces are clean and well shaped for carving."
                if clean
                else "There's some chop on the faces, but the size makes up for it."
            )
        elif height >= 2:
            size = f"A small {swell} swell is producing waist-to-chest high faces at {height_label}."
            quality = (
                "Clean and organized, ideal for longboarding and practicing turns."
                if clean
                else "The wind is adding bump, so it's choppy but still fun."
            )
        elif height >= 1:
            size = f"Minimal {swell} swell with ankle-to-knee high faces at {height_label}."
            quality = (
                "Smooth enough for beginners or a cruisy longboard session."
                if clean
                else "Small and choppy, best for practicing pop-ups."
            )
        else:
            size = f"Minimal swell, barely ankle high at {height_label}."
            quality = "Better suited to swimming or paddleboarding than surfing."
        return f"{size} {quality}"

    def _period(self, reading: SensorReading) -> str | None:
        period = parse_measurement(reading.wave_period)
        if period is None or period <= 0:
            return None
        label = f"{_fmt(period)} seconds"
        if period >= 12:
            return f"The period is an excellent {label}, long-period groundswell with real punch and well-spaced sets."
        if period >= 10:
            return f"The period is a good {label}, giving organized sets with decent power."
        if period >= 8:
            return f"The period is a moderate {label}, with reasonably spaced sets."
        if period >= 6:
            return f"The period is a short {label}, so expect frequent waves with less power."
        return f"At {label} the swell is choppy and wind-driven with quick, bumpy rides."

    def _wind(self, reading: SensorReading, wind_speed: float, offshore: bool) -> str:
        direction = _or_default(reading.wind_direction, "Variable")
        speed = f"{_fmt(wind_speed)} mph from the {direction}"
        if offshore:
            if wind_speed < 5:
                return f"Nearly calm offshore winds at {speed} are leaving the faces glassy."
            if wind_speed < 10:
                return f"Light offshore winds at {speed} are grooming the faces nicely."
            if wind_speed < 15:
                return f"Moderate offshore winds at {speed} are holding the faces up, if a little gusty."
            if wind_speed < 20:
                return f"Strong offshore winds at {speed} keep it clean but make paddling out hard work."
            return f"Very strong offshore winds at {speed} are blowing the tops off the waves."
        if wind_speed < 5:
            return f"Nearly calm onshore winds at {speed} aren't adding much texture."
        if wind_speed < 8:
            return f"Light onshore winds at {speed} add slight texture but it's still very surfable."
        if wind_speed < 12:
            return f"Moderate onshore winds at {speed} are putting noticeable chop on the faces."
        if wind_speed < 18:
            return f"Strong onshore winds at {speed} have it choppy and disorganized."
        return f"Very strong onshore winds at {speed} have it blown out and messy."

    def _weather(self, reading: SensorReading, weather: WeatherSnapshot) -> str:
        text = f"Current conditions are {_weather_text(weather)}"
        if not is_sentinel(weather.temperature):
            temperature = weather.temperature.strip()
            if temperature[-1:].isdigit():
                temperature += "°F"
            text += f" with an air temperature of {temperature}"
        text += "."

        water = parse_measurement(reading.water_temp)
        advice = wetsuit_advice(water) if water is not None else None
        if advice:
            text += f" Water temperature is {reading.water_temp}, {advice}."
        else:
            text += " Water temperature is unavailable."
        return text

    def _tides(self, tides: Sequence[TideEvent], height: float, now: time) -> str:
        parts = []
        phase = tide_phase(tides, now)
        if phase:
            parts.append(phase)
        schedule = ", ".join(
            f"{_tide_label(event)} tide at {event.time.strftime('%H:%M')} ({_fmt(event.height)}{event.height_unit})"
            for event in sorted(tides, key=lambda event: event.time)
        )
        parts.append(f"Today's schedule: {schedule}.")
        if height >= 4:
            parts.append("With this much size, mid to high tide should give the best shape and power.")
        elif height >= 2:
            parts.append("Mid tide usually offers the best balance of shape and rideable sections.")
        else:
            parts.append("Low to mid tide is your best chance at the available waves.")
        return " ".join(parts)


__all__ = [
    "Selector",
    "NarrativeComposer",
    "clock_selector",
    "seeded_selector",
    "index_selector",
    "rating_tier",
    "candidates_for",
    "fallback_candidates",
    "tide_summary",
    "tide_phase",
    "wetsuit_advice",
    "OPENINGS",
    "CLOSINGS",
    "FALLBACK_TEMPLATES",
    "TIDE_UNAVAILABLE",
]

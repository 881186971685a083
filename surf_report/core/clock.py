"""Wall-clock helpers; the pipeline works on the surf spot's local calendar day."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(moment: datetime, tz_name: str) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def as_utc(moment: datetime) -> datetime:
    """Timezone-aware UTC form of ``moment``.

    SQLite hands stored timestamps back without tzinfo; those are already UTC.
    """

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_today(tz_name: str, clock: Clock = utc_now) -> date:
    """Calendar date at the spot, which is what reports are keyed on."""

    return to_local(clock(), tz_name).date()


def capture_time_label(captured_at: datetime | None, tz_name: str) -> str | None:
    """Human label for the time a buoy observation was taken, e.g. ``6:40 AM EDT``."""

    if captured_at is None:
        return None
    local = to_local(captured_at, tz_name)
    return local.strftime("%I:%M %p %Z").lstrip("0")


__all__ = ["Clock", "utc_now", "to_local", "as_utc", "local_today", "capture_time_label"]

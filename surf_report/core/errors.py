"""Exception taxonomy for the report pipeline.

Only :class:`PersistenceError`, :class:`ConfigurationError` and
:class:`RunCancelled` end a run with a failure response. :class:`DataUnavailable`
is absorbed by the retry loop and :class:`UpstreamFetchError` only reduces how
complete the narrative is.
"""

from __future__ import annotations


class SurfReportError(Exception):
    """Base class for every error raised by the service."""


class DataUnavailable(SurfReportError):
    """The sensor reading is missing or not usable yet."""


class UpstreamFetchError(SurfReportError):
    """An upstream provider (buoy, weather, tides) could not be fetched or parsed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class PersistenceError(SurfReportError):
    """Writing to the report store failed."""


class ConfigurationError(SurfReportError):
    """Required configuration is missing or invalid."""


class UnknownLocation(ConfigurationError):
    """The requested location is not in the spot registry."""


class RunCancelled(SurfReportError):
    """The run was cancelled or passed its deadline before finishing."""


__all__ = [
    "SurfReportError",
    "DataUnavailable",
    "UpstreamFetchError",
    "PersistenceError",
    "ConfigurationError",
    "UnknownLocation",
    "RunCancelled",
]

"""Cooperative cancellation shared by the orchestrator and the adapters."""

from __future__ import annotations

import threading
import time

from surf_report.core.errors import RunCancelled


class CancelToken:
    """A cancel flag plus an optional absolute deadline on the monotonic clock."""

    def __init__(self, deadline_seconds: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + deadline_seconds if deadline_seconds is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.remaining() == 0.0

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Run was cancelled")
        if self.remaining() == 0.0:
            raise RunCancelled("Run deadline exceeded")

    def clamp_timeout(self, timeout: float) -> float:
        """Never let a single upstream call outlive the run deadline."""

        remaining = self.remaining()
        if remaining is None:
            return timeout
        return max(0.1, min(timeout, remaining))

    def wait(self, seconds: float) -> None:
        """Sleep between attempts, waking early (and raising) on cancellation."""

        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
        else:
            self._event.wait(seconds)
        self.raise_if_cancelled()


__all__ = ["CancelToken"]

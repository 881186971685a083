"""JSON logging shared by the API, the CLI and the pipeline."""

from __future__ import annotations

import logging
import os
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional

from pythonjsonlogger import jsonlogger

_CONFIGURED = False
_LOG_BUFFER: deque[dict[str, str]] = deque(maxlen=200)
_RUN_CONTEXT: ContextVar[dict[str, str]] = ContextVar("surf_report_run_context", default={})

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")
_CONTEXT_KEYS = ("run_id", "location", "report_date")


class _ServiceNameFilter(logging.Filter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.service = self.service_name
        return True


class _RunContextFilter(logging.Filter):
    """Stamp records with the fields bound by :func:`run_context`."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _RUN_CONTEXT.get().items():
            setattr(record, key, value)
        return True


@contextmanager
def run_context(**fields: object) -> Iterator[dict[str, str]]:
    """Bind ``fields`` (run id, spot, report date) to every record logged inside the block."""

    bound = {**_RUN_CONTEXT.get(), **{key: str(value) for key, value in fields.items()}}
    token = _RUN_CONTEXT.set(bound)
    try:
        yield bound
    finally:
        _RUN_CONTEXT.reset(token)


def current_run_context() -> dict[str, str]:
    return dict(_RUN_CONTEXT.get())


class _BufferHandler(logging.Handler):
    """Keep the most recent records around for the diagnostics endpoint."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        try:
            timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
            _LOG_BUFFER.appendleft(
                {
                    "time": timestamp,
                    "level": record.levelname,
                    "name": record.name,
                    "message": record.getMessage(),
                    **{key: getattr(record, key) for key in _CONTEXT_KEYS if hasattr(record, key)},
                }
            )
        except Exception:
            self.handleError(record)


def setup_logging(service_name: Optional[str] = None) -> None:
    """Configure root logging with a JSON formatter; safe to call more than once."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    service = service_name or os.getenv("SERVICE_NAME", "surf-report")

    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(service)s")
    )
    handler.addFilter(_ServiceNameFilter(service))
    handler.addFilter(_RunContextFilter())
    buffer = _BufferHandler()
    buffer.addFilter(_RunContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.addHandler(buffer)
    root.setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.captureWarnings(True)
    _CONFIGURED = True


def get_log_buffer(
    limit: int = 100, run_id: Optional[str] = None, location: Optional[str] = None
) -> list[dict[str, str]]:
    records = [
        record
        for record in _LOG_BUFFER
        if (run_id is None or record.get("run_id") == run_id)
        and (location is None or record.get("location") == location)
    ]
    return records[:limit]


__all__ = ["setup_logging", "get_log_buffer", "run_context", "current_run_context"]

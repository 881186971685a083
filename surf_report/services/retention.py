"""Delete rows that fell out of the retention window."""

from __future__ import annotations

import datetime as dt
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, delete

from surf_report.core.errors import PersistenceError
from surf_report.models import SensorReading, SurfReport, TideEvent, WeatherSnapshot

logger = logging.getLogger(__name__)


def prune_old_rows(session: Session, today: dt.date, retention_days: int = 7) -> dict[str, int]:
    """Drop reports, readings and weather older than the window, and tides before today.

    Returns the number of deleted rows per table.
    """

    cutoff = today - dt.timedelta(days=retention_days)
    statements = {
        SurfReport.__tablename__: delete(SurfReport).where(SurfReport.date < cutoff),
        SensorReading.__tablename__: delete(SensorReading).where(SensorReading.date < cutoff),
        WeatherSnapshot.__tablename__: delete(WeatherSnapshot).where(WeatherSnapshot.date < cutoff),
        TideEvent.__tablename__: delete(TideEvent).where(TideEvent.date < today),
    }
    counts: dict[str, int] = {}
    try:
        for table, statement in statements.items():
            counts[table] = session.exec(statement).rowcount or 0
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Retention cleanup failed", exc_info=True)
        raise PersistenceError(f"Retention cleanup failed: {exc}") from exc

    logger.info("Pruned rows older than %s (tides before %s): %s", cutoff, today, counts)
    return counts


__all__ = ["prune_old_rows"]

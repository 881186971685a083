"""Persistence of daily surf reports.

Exactly one row exists per (date, location). Writes go through a native upsert
whose update branch only fires when the incoming report is at least as new as
the stored one, so a slow run that started earlier cannot clobber a fresher
report written by an overlapping run.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, delete, select

from surf_report.core.clock import as_utc
from surf_report.core.errors import PersistenceError
from surf_report.models import SurfReport

logger = logging.getLogger(__name__)

_CONFLICT_KEYS = ("date", "location")
_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _row_values(report: SurfReport) -> dict[str, Any]:
    values = report.model_dump(exclude={"id"})
    values["generated_at"] = as_utc(values["generated_at"])
    values["updated_at"] = dt.datetime.now(dt.timezone.utc)
    return values


class ReportStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    def upsert(self, report: SurfReport) -> bool:
        """Create or replace the report for its (date, location).

        Returns False when a newer report for the same key was already stored
        and this write was discarded.
        """

        values = _row_values(report)
        try:
            insert = _UPSERT_DIALECTS.get(self.dialect)
            if insert is not None:
                written = self._native_upsert(insert, values)
            else:
                written = self._replace(values)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "Failed to store report for %s on %s",
                report.location,
                report.date,
                exc_info=True,
            )
            raise PersistenceError(f"Failed to store surf report: {exc}") from exc

        if written:
            logger.info(
                "Stored surf report for %s on %s (rating %s)", report.location, report.date, report.rating
            )
        else:
            logger.warning(
                "Discarded stale surf report for %s on %s generated at %s",
                report.location,
                report.date,
                report.generated_at.isoformat(),
            )
        return written

    def _native_upsert(self, insert, values: dict[str, Any]) -> bool:
        table = SurfReport.__table__
        stmt = insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_CONFLICT_KEYS),
            set_={name: stmt.excluded[name] for name in values if name not in _CONFLICT_KEYS},
            where=table.c.generated_at <= stmt.excluded.generated_at,
        )
        result = self.session.exec(stmt)
        return result.rowcount != 0

    def _replace(self, values: dict[str, Any]) -> bool:
        existing = self.get(values["date"], values["location"])
        if existing is not None and as_utc(existing.generated_at) > as_utc(values["generated_at"]):
            return False
        self.session.exec(
            delete(SurfReport)
            .where(SurfReport.date == values["date"])
            .where(SurfReport.location == values["location"])
        )
        self.session.add(SurfReport(**values))
        self.session.flush()
        return True

    def get(self, date: dt.date, location: str) -> SurfReport | None:
        return self.session.exec(
            select(SurfReport).where(SurfReport.date == date).where(SurfReport.location == location)
        ).first()

    def latest(self, location: str) -> SurfReport | None:
        return self.session.exec(
            select(SurfReport)
            .where(SurfReport.location == location)
            .order_by(SurfReport.date.desc())
        ).first()

    def list_recent(self, location: str, limit: int = 7) -> list[SurfReport]:
        return list(
            self.session.exec(
                select(SurfReport)
                .where(SurfReport.location == location)
                .order_by(SurfReport.date.desc())
                .limit(limit)
            ).all()
        )


__all__ = ["ReportStore"]

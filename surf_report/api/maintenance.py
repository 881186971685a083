"""Housekeeping endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlmodel import Session

from surf_report.api.deps import get_db
from surf_report.core.clock import local_today
from surf_report.core.config import settings
from surf_report.services.retention import prune_old_rows

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/prune")
def prune(session: Session = Depends(get_db)) -> dict[str, Any]:
    """Delete rows older than the retention window."""
    today = local_today(settings.report_timezone)
    deleted = prune_old_rows(session, today, retention_days=settings.retention_days)
    return {"success": True, "today": today.isoformat(), "deleted": deleted}


__all__ = ["router"]

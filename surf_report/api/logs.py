"""Recent log records from the in-memory buffer."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from surf_report.core.logging_config import get_log_buffer

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("")
def list_logs(
    limit: int = Query(100, ge=1, le=500),
    run_id: Optional[str] = Query(None, description="Only records from one report run."),
    location: Optional[str] = Query(None, description="Only records for one spot."),
) -> dict[str, list[dict[str, str]]]:
    return {"logs": get_log_buffer(limit=limit, run_id=run_id, location=location)}


__all__ = ["router"]

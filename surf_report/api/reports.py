"""Surf report endpoints."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlmodel import Session

from surf_report.api.deps import get_db
from surf_report.core.clock import local_today
from surf_report.core.config import settings
from surf_report.core.errors import DataUnavailable, SurfReportError, UnknownLocation
from surf_report.core.spots import Spot, get_spot
from surf_report.models import SurfReport
from surf_report.services.buoy import BuoyService
from surf_report.services.measurement_refresh import refresh_measurements
from surf_report.services.orchestrator import build_orchestrator
from surf_report.services.rating import get_rating_strategy
from surf_report.services.report_store import ReportStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


class GeneratePayload(BaseModel):
    location: Optional[str] = Field(default=None, description="Spot id; defaults to the configured location.")
    date: Optional[dt.date] = None


class RefreshPayload(BaseModel):
    location: Optional[str] = None
    date: Optional[dt.date] = None


def _spot_or_404(location: str | None) -> Spot:
    try:
        return get_spot(location)
    except UnknownLocation as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/generate")
def generate_report(
    payload: Optional[GeneratePayload] = None, session: Session = Depends(get_db)
) -> dict[str, Any]:
    """Run the report pipeline synchronously.

    Pipeline outcomes, failures included, are reported in the body with HTTP 200.
    """

    payload = payload or GeneratePayload()
    spot = _spot_or_404(payload.location)
    try:
        with httpx.Client() as client:
            orchestrator = build_orchestrator(session, client)
            result = orchestrator.run(spot, payload.date)
    except SurfReportError as exc:
        logger.error("Report generation for %s aborted: %s", spot.id, exc)
        return {"success": False, "error": str(exc)}
    return result.to_response()


@router.post("/refresh")
def refresh_report(
    payload: Optional[RefreshPayload] = None, session: Session = Depends(get_db)
) -> dict[str, Any]:
    """Pull the latest buoy values into today's report without rewriting its narrative."""

    payload = payload or RefreshPayload()
    spot = _spot_or_404(payload.location)
    report_date = payload.date or local_today(spot.timezone)
    try:
        with httpx.Client() as client:
            report = refresh_measurements(
                session,
                spot,
                report_date,
                get_rating_strategy(settings.rating_strategy),
                sensor=BuoyService(session, client=client),
            )
    except DataUnavailable as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SurfReportError as exc:
        logger.error("Measurement refresh for %s failed: %s", spot.id, exc)
        return {"success": False, "error": str(exc)}
    return {
        "success": True,
        "date": report.date.isoformat(),
        "location": report.location,
        "rating": report.rating,
        "waveHeight": report.wave_height,
        "windSpeed": report.wind_speed,
    }


@router.get("/{location}", response_model=SurfReport)
def latest_report(location: str, session: Session = Depends(get_db)) -> SurfReport:
    spot = _spot_or_404(location)
    report = ReportStore(session).latest(spot.id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No reports for {spot.id}")
    return report


@router.get("/{location}/history", response_model=List[SurfReport])
def report_history(
    location: str,
    limit: int = Query(7, ge=1, le=60),
    session: Session = Depends(get_db),
) -> List[SurfReport]:
    spot = _spot_or_404(location)
    return ReportStore(session).list_recent(spot.id, limit=limit)


@router.get("/{location}/{report_date}", response_model=SurfReport)
def report_for_date(
    location: str, report_date: dt.date, session: Session = Depends(get_db)
) -> SurfReport:
    spot = _spot_or_404(location)
    report = ReportStore(session).get(report_date, spot.id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No report for {spot.id} on {report_date}")
    return report


__all__ = ["router"]

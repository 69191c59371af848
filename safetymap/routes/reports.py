"""
reports.py — Safety report routes.

Routes:
  POST   /api/v1/reports               — submit a report (Bearer required)
  GET    /api/v1/reports/nearby        — reports within radius_km (or camera zoom) of a point
  GET    /api/v1/reports/recent        — newest reports, any location
  GET    /api/v1/reports/{id}          — a single report
  POST   /api/v1/reports/{id}/vote     — {"direction": "up" | "down"}
  DELETE /api/v1/reports/{id}          — author only

Domain errors (RecordNotFound, Unauthorized, StoreUnavailable, ...) are
raised by the services and turned into { "detail": "..." } responses by
the handler registered in main.py.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from safetymap.core.config import settings
from safetymap.core.rate_limit import limiter
from safetymap.models.geo import GeoPoint
from safetymap.models.report import (
    DeleteResponse,
    NearbyResponse,
    ReportListResponse,
    SafetyReport,
    SubmitReportRequest,
    VoteRequest,
)
from safetymap.routes.auth import CurrentAuthor
from safetymap.routes.deps import ProximityDep, ReportServiceDep
from safetymap.services.geocodec import radius_for_zoom

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


def resolve_radius(radius_km: Optional[float], zoom: Optional[float]) -> float:
    """Explicit radius wins; else derive from zoom; else the configured default."""
    if radius_km is not None:
        return radius_km
    if zoom is not None:
        radius = radius_for_zoom(zoom)
        if radius is None:
            raise HTTPException(
                status_code=422,
                detail="Zoom level too far out for a nearby search (minimum 10)",
            )
        return radius
    return settings.default_radius_km


# ── Routes ────────────────────────────────────────────────────────────────────

@router.post("", response_model=SafetyReport, status_code=201)
@limiter.limit(settings.submit_rate_limit)
async def submit_report(
    request: Request,
    payload: SubmitReportRequest,
    author_id: CurrentAuthor,
    service: ReportServiceDep,
):
    """Store a new report; its geohash is derived from the coordinates."""
    return await service.submit(author_id, payload)


@router.get("/nearby", response_model=NearbyResponse)
async def nearby_reports(
    query: ProximityDep,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(default=None, gt=0, le=20_000),
    zoom: Optional[float] = Query(default=None, ge=0, le=25, description="Map camera zoom"),
):
    """
    Reports within the radius, in store order (geohash asc, newest first
    within a geohash). An empty list means "nothing nearby", never "failed".
    """
    center = GeoPoint(latitude=lat, longitude=lng)
    radius = resolve_radius(radius_km, zoom)
    items, window = await query.search(center, radius)
    return NearbyResponse(
        center=center,
        radius_km=radius,
        precision=window.precision,
        lower=window.lower,
        upper=window.upper,
        items=items,
        count=len(items),
    )


@router.get("/recent", response_model=ReportListResponse)
async def recent_reports(
    service: ReportServiceDep,
    limit: int = Query(default=50, ge=1, le=100),
):
    items = await service.recent(limit)
    return ReportListResponse(items=items, count=len(items))


@router.get("/{report_id}", response_model=SafetyReport)
async def get_report(report_id: str, service: ReportServiceDep):
    return await service.get(report_id)


@router.post("/{report_id}/vote", response_model=SafetyReport)
@limiter.limit(settings.vote_rate_limit)
async def vote_on_report(
    request: Request,
    report_id: str,
    payload: VoteRequest,
    service: ReportServiceDep,
):
    """Atomically increment upvotes or downvotes."""
    return await service.vote(report_id, payload.is_upvote)


@router.delete("/{report_id}", response_model=DeleteResponse)
async def delete_report(report_id: str, author_id: CurrentAuthor, service: ReportServiceDep):
    await service.delete(report_id, author_id)
    return DeleteResponse(ok=True, id=report_id)

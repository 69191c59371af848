"""
map.py — View-reconciliation routes for map clients.

Routes:
  POST /api/v1/map/sync    — what should change on my map?
  GET  /api/v1/map/levels  — legend: safety levels with display names + colours

HOW SYNC WORKS
──────────────
The client sends the report ids it currently draws, its focused id (if
any) and its camera (centre + radius_km or zoom). The server:

  1. runs the proximity search for the camera
  2. reconciles the client's ids against the result  → added / removed
  3. drops focus if the focused report left the set
  4. applies toggle_focus, if given                   → recenter_to / recenter_zoom
  5. returns circle visibility for every id that stays on the map

Reports that stay on the map are not re-sent, even if their vote counts
changed. Nothing is kept server-side between calls.

Example:
  curl -X POST localhost:8000/api/v1/map/sync -H 'content-type: application/json' \\
       -d '{"latitude": 40.0, "longitude": -74.0, "zoom": 13, "displayed_ids": []}'
"""

import logging

from fastapi import APIRouter

from safetymap.models.map_view import MapSyncRequest, MapSyncResponse, ViewUpdate
from safetymap.models.report import SafetyLevel, SafetyLevelInfo
from safetymap.routes.deps import ProximityDep
from safetymap.services.geocodec import radius_for_zoom
from safetymap.services.map_view import MapViewSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/map", tags=["map"])


@router.post("/sync", response_model=MapSyncResponse)
async def sync_view(payload: MapSyncRequest, query: ProximityDep):
    session = MapViewSession.restore(
        payload.displayed_ids,
        payload.focused_id,
        query=query,
    )

    radius = payload.radius_km
    if radius is None:
        radius = radius_for_zoom(payload.zoom)
    if radius is None:
        # Zoomed out too far: leave the client's map exactly as it is.
        logger.debug("Sync skipped at zoom %.1f", payload.zoom)
        return MapSyncResponse(
            update=ViewUpdate(visibility=session.state.focus.visibility(session.state.displayed)),
            focused_id=session.state.focused_id,
            searched=False,
        )

    update = await session.refresh(payload.center, radius)

    if payload.toggle_focus is not None:
        focus_update = session.toggle_focus(payload.toggle_focus)
        update.visibility = focus_update.visibility
        update.recenter_to = focus_update.recenter_to
        update.recenter_zoom = focus_update.recenter_zoom

    return MapSyncResponse(
        update=update,
        focused_id=session.state.focused_id,
        radius_km=radius,
    )


@router.get("/levels", response_model=list[SafetyLevelInfo])
async def safety_levels():
    return [
        SafetyLevelInfo(
            level=level,
            display_name=level.display_name,
            color=level.color,
            fill_color=level.fill_color,
        )
        for level in SafetyLevel
    ]

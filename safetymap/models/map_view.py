"""
map_view.py — Instructions emitted to the map client.

ViewUpdate       — per-cycle delta: entities to add / remove, circle
                   visibility, optional recentre
MapSyncRequest   — stateless sync: what the client currently shows + viewport
MapSyncResponse  — ViewUpdate plus the resulting focus and search window
"""

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from safetymap.models.geo import GeoPoint
from safetymap.models.report import SafetyReport


class ViewUpdate(BaseModel):
    """
    The minimal instruction set a map client needs per update cycle.

    visibility applies to radius circles only; point markers stay visible.
    """
    added: list[SafetyReport] = Field(default_factory=list)
    removed: set[str] = Field(default_factory=set)
    visibility: dict[str, bool] = Field(default_factory=dict)
    recenter_to: Optional[GeoPoint] = None
    recenter_zoom: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed and self.recenter_to is None


class MapSyncRequest(BaseModel):
    """Payload for POST /api/v1/map/sync."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    # Either an explicit radius or the camera zoom it is derived from.
    radius_km: Optional[float] = Field(default=None, gt=0, le=20_000)
    zoom: Optional[float] = Field(default=None, ge=0, le=25)
    displayed_ids: list[str] = Field(default_factory=list)
    focused_id: Optional[str] = None
    # Applied after the reconcile pass.
    toggle_focus: Optional[str] = None

    @model_validator(mode="after")
    def _radius_or_zoom(self):
        if self.radius_km is None and self.zoom is None:
            raise ValueError("Provide radius_km or zoom")
        return self

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


class MapSyncResponse(BaseModel):
    update: ViewUpdate
    focused_id: Optional[str] = None
    radius_km: Optional[float] = None
    # False when the zoom level is too far out to search; update is empty.
    searched: bool = True

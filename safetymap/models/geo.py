"""
geo.py — Immutable geographic value types.

GeoPoint      — a validated (latitude, longitude) pair
GeohashRange  — inclusive [lower, upper] prefix window for one range scan
"""

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """A point on the globe. Frozen: safe to share and hash."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeohashRange(BaseModel):
    """
    Prefix window handed to the store.

    The window is approximate near cell edges (it can both miss reports that
    are inside the radius and include reports outside it); only the exact
    distance filter that follows the scan guarantees containment.
    """

    model_config = ConfigDict(frozen=True)

    lower: str
    upper: str
    precision: int = Field(..., ge=1)

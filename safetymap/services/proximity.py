"""
proximity.py — "Reports within R km of here" over the geohash index.

Steps per call:
  1. bounds_for_radius() picks a precision tier and a prefix window
  2. one range scan on the store (geohash asc, created_at desc, capped)
  3. exact haversine filter — mandatory, the window is only approximate
  4. return the survivors in store order

All-or-nothing: a store failure raises StoreUnavailable and no partial
list is returned, so "nothing nearby" (empty list) and "query failed"
stay distinguishable. Cancelling the awaiting task propagates
CancelledError through the store call so its cursor is released.
"""

import logging
from typing import Optional

from safetymap.core.config import settings
from safetymap.core.errors import SafetyMapError, StoreUnavailable
from safetymap.models.geo import GeohashRange, GeoPoint
from safetymap.models.report import SafetyReport
from safetymap.services.geocodec import bounds_for_radius, haversine_km, validate_coordinate
from safetymap.services.report_store import ReportStore

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 50.0
MAX_CANDIDATES = 100


class ProximityIndexQuery:
    """Tiered prefix range scan + exact distance filter."""

    def __init__(
        self,
        store: ReportStore,
        limit: int = MAX_CANDIDATES,
        default_radius_km: float = DEFAULT_RADIUS_KM,
    ) -> None:
        self.store = store
        self.limit = limit
        self.default_radius_km = default_radius_km

    @classmethod
    def from_settings(cls, store: ReportStore) -> "ProximityIndexQuery":
        return cls(store, limit=settings.nearby_limit, default_radius_km=settings.default_radius_km)

    async def find_nearby(
        self,
        center: GeoPoint,
        radius_km: Optional[float] = None,
    ) -> list[SafetyReport]:
        reports, _ = await self.search(center, radius_km)
        return reports

    async def search(
        self,
        center: GeoPoint,
        radius_km: Optional[float] = None,
    ) -> tuple[list[SafetyReport], GeohashRange]:
        """Like find_nearby(), but also returns the window that was scanned."""
        radius = self.default_radius_km if radius_km is None else radius_km
        validate_coordinate(center.latitude, center.longitude)

        window = bounds_for_radius(center, radius)
        logger.debug(
            "Nearby search at (%.5f, %.5f) r=%.1f km → [%s, %s] p=%d",
            center.latitude, center.longitude, radius,
            window.lower, window.upper, window.precision,
        )

        try:
            candidates = await self.store.range_query(window.lower, window.upper, self.limit)
        except SafetyMapError:
            raise
        except Exception as exc:
            raise StoreUnavailable("range query", exc) from exc

        nearby = [r for r in candidates if haversine_km(center, r.location) <= radius]
        logger.info(
            "Nearby search kept %d of %d candidates within %.1f km",
            len(nearby), len(candidates), radius,
        )
        return nearby, window

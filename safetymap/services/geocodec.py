"""
geocodec.py — Geohash encoding and the radius → prefix window mapping.

A geohash interleaves longitude and latitude bisection bits (longitude
first) and packs them 5 at a time into a base-32 alphabet that skips
a, i, l and o. Strings that share a prefix share a cell, so a sorted
index on the geohash field turns "reports near here" into a range scan.

USAGE
─────
    from safetymap.services.geocodec import encode, bounds_for_radius

    encode(42.6, -5.6, 5)                       # → 'ezs42'
    bounds_for_radius(GeoPoint(latitude=42.6, longitude=-5.6), 30)
    # → GeohashRange(lower='ezs42', upper='ezs43', precision=5)

KNOWN APPROXIMATION
───────────────────
bounds_for_radius() returns the centre cell and bumps its last character
to get the upper bound. That window is not a geometric circle: a report
just across a cell edge can be inside the radius but outside the window,
and the window can hold reports beyond the radius. Callers must always
apply haversine_km() afterwards (ProximityIndexQuery does).
"""

from __future__ import annotations

import math
from typing import Optional

from safetymap.core.errors import InvalidCoordinate
from safetymap.models.geo import GeohashRange, GeoPoint

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(BASE32)}

EARTH_RADIUS_KM = 6371.0

# (radius strictly above, precision), checked top-down; anything smaller gets 7
_PRECISION_TIERS = [
    (100.0, 4),
    (20.0,  5),
    (5.0,   6),
]
_FINEST_PRECISION = 7

# (minimum camera zoom, search radius km)
_ZOOM_TIERS = [
    (15.0, 5.0),
    (12.0, 20.0),
    (10.0, 50.0),
]


# ── Encoding ──────────────────────────────────────────────────────────────────

def validate_coordinate(latitude: float, longitude: float) -> None:
    """Raise InvalidCoordinate unless both values are finite and in range."""
    if not (
        math.isfinite(latitude)
        and math.isfinite(longitude)
        and -90.0 <= latitude <= 90.0
        and -180.0 <= longitude <= 180.0
    ):
        raise InvalidCoordinate(latitude, longitude)


def encode(latitude: float, longitude: float, precision: int = _FINEST_PRECISION) -> str:
    """
    Encode a coordinate as a geohash of exactly *precision* characters.

    A bit is set when the coordinate is strictly above the midpoint, so a
    value sitting exactly on a bisection line falls into the lower half.
    """
    if precision < 1:
        raise ValueError("precision must be >= 1")
    validate_coordinate(latitude, longitude)

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0

    out: list[str] = []
    even = True  # longitude on even bits
    bit = 0
    ch = 0

    while len(out) < precision:
        if even:
            mid = (lon_min + lon_max) / 2
            if longitude > mid:
                ch |= 1 << (4 - bit)
                lon_min = mid
            else:
                lon_max = mid
        else:
            mid = (lat_min + lat_max) / 2
            if latitude > mid:
                ch |= 1 << (4 - bit)
                lat_min = mid
            else:
                lat_max = mid

        even = not even
        if bit < 4:
            bit += 1
        else:
            out.append(BASE32[ch])
            bit = 0
            ch = 0

    return "".join(out)


def encode_point(point: GeoPoint, precision: int = _FINEST_PRECISION) -> str:
    return encode(point.latitude, point.longitude, precision)


# ── Decoding ──────────────────────────────────────────────────────────────────

def decode_bbox(geohash: str) -> tuple[float, float, float, float]:
    """Return (lat_min, lat_max, lon_min, lon_max) of the cell."""
    if not geohash:
        raise ValueError("geohash must be non-empty")

    lat_min, lat_max = -90.0, 90.0
    lon_min, lon_max = -180.0, 180.0
    even = True

    for c in geohash.lower():
        try:
            cd = _DECODE_MAP[c]
        except KeyError as e:
            raise ValueError(f"Invalid geohash character: {c!r}") from e

        for mask in (16, 8, 4, 2, 1):
            if even:
                mid = (lon_min + lon_max) / 2
                if cd & mask:
                    lon_min = mid
                else:
                    lon_max = mid
            else:
                mid = (lat_min + lat_max) / 2
                if cd & mask:
                    lat_min = mid
                else:
                    lat_max = mid
            even = not even

    return lat_min, lat_max, lon_min, lon_max


def decode(geohash: str) -> GeoPoint:
    """Return the centre of the cell."""
    lat_min, lat_max, lon_min, lon_max = decode_bbox(geohash)
    return GeoPoint(latitude=(lat_min + lat_max) / 2, longitude=(lon_min + lon_max) / 2)


# ── Range query support ───────────────────────────────────────────────────────

def precision_for_radius(radius_km: float) -> int:
    """Coarser prefix for a wider search; never increases as radius grows."""
    for threshold, precision in _PRECISION_TIERS:
        if radius_km > threshold:
            return precision
    return _FINEST_PRECISION


def bounds_for_radius(point: GeoPoint, radius_km: float) -> GeohashRange:
    """
    Build the prefix window for a search of *radius_km* around *point*.

    upper is lower with its last character replaced by the next alphabet
    character ('z' stays 'z'). See the module docstring for why the result
    is only a candidate window.
    """
    precision = precision_for_radius(radius_km)
    lower = encode_point(point, precision)

    last_index = BASE32.index(lower[-1])
    if last_index < len(BASE32) - 1:
        upper = lower[:-1] + BASE32[last_index + 1]
    else:
        upper = lower[:-1] + "z"

    return GeohashRange(lower=lower, upper=upper, precision=precision)


# ── Distance ──────────────────────────────────────────────────────────────────

def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in kilometres on a 6371 km sphere."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


# ── Camera zoom ───────────────────────────────────────────────────────────────

def radius_for_zoom(zoom: float) -> Optional[float]:
    """
    Search radius for a map camera zoom level, or None when the camera is
    zoomed out too far for a proximity search to be meaningful.
    """
    for min_zoom, radius_km in _ZOOM_TIERS:
        if zoom >= min_zoom:
            return radius_km
    return None

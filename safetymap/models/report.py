"""
report.py — Pydantic schemas for safety reports.

SafetyLevel          — the five-step rating scale (+ legend colours)
SafetyReport         — a stored report as returned by the API
SubmitReportRequest  — what the client sends to create one
VoteRequest          — up / down vote payload
NearbyResponse       — result of a proximity search, with the scan window used
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from safetymap.core.config import settings
from safetymap.models.geo import GeoPoint


# ── Safety level ──────────────────────────────────────────────────────────────

class SafetyLevel(str, Enum):
    SAFE = "SAFE"
    BE_CAUTIOUS = "BE_CAUTIOUS"
    UNSAFE = "UNSAFE"
    DANGEROUS = "DANGEROUS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SafetyLevel":
        """Lenient lookup: unknown or missing values become UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        key = str(value).strip().upper().replace(" ", "_")
        key = _LEVEL_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN

    @property
    def display_name(self) -> str:
        return _LEVEL_STYLE[self][0]

    @property
    def color(self) -> tuple[int, int, int]:
        return _LEVEL_STYLE[self][1]

    @property
    def fill_color(self) -> tuple[int, int, int, int]:
        """ARGB fill for the radius circle (alpha 80/255)."""
        return (80, *self.color)


_LEVEL_ALIASES = {"CAUTIOUS": "BE_CAUTIOUS"}

_LEVEL_STYLE: dict[SafetyLevel, tuple[str, tuple[int, int, int]]] = {
    SafetyLevel.SAFE:        ("Safe",        (76, 175, 80)),
    SafetyLevel.BE_CAUTIOUS: ("Be Cautious", (255, 193, 7)),
    SafetyLevel.UNSAFE:      ("Unsafe",      (255, 152, 0)),
    SafetyLevel.DANGEROUS:   ("Dangerous",   (244, 67, 54)),
    SafetyLevel.UNKNOWN:     ("Unknown",     (128, 128, 128)),
}


class SafetyLevelInfo(BaseModel):
    """One legend entry for GET /api/v1/map/levels."""
    level: SafetyLevel
    display_name: str
    color: tuple[int, int, int]
    fill_color: tuple[int, int, int, int]


# ── Report ────────────────────────────────────────────────────────────────────

class SafetyReport(BaseModel):
    """A stored safety report."""
    id: str
    location: GeoPoint
    area_name: str = ""
    level: SafetyLevel = SafetyLevel.UNKNOWN
    comment: str = ""
    author_id: str = ""
    author_name: str = "Anonymous User"
    created_at: Optional[datetime] = None   # None until the store assigns it
    upvotes: int = Field(default=0, ge=0)
    downvotes: int = Field(default=0, ge=0)
    radius_meters: int = 500
    geohash: str = ""

    @field_validator("level", mode="before")
    @classmethod
    def _lenient_level(cls, value):
        if isinstance(value, SafetyLevel):
            return value
        return SafetyLevel.parse(value)

    def relative_age(self, now: Optional[datetime] = None) -> str:
        """Human-readable age: Today, Yesterday, N days/weeks/months ago."""
        if self.created_at is None:
            return "Unknown"
        now = now or datetime.now(tz=timezone.utc)
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        days = (now - created).days
        if days <= 0:
            return "Today"
        if days == 1:
            return "Yesterday"
        if days < 7:
            return f"{days} days ago"
        if days < 30:
            return f"{days // 7} weeks ago"
        return f"{days // 30} months ago"


# ── Requests ──────────────────────────────────────────────────────────────────

class SubmitReportRequest(BaseModel):
    """Payload for POST /api/v1/reports."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    area_name: str = Field(..., min_length=1, max_length=200)
    level: SafetyLevel
    comment: str = Field(default="", max_length=2000)
    radius_meters: int = Field(
        default_factory=lambda: settings.default_report_radius_m, ge=50, le=5000
    )

    @field_validator("level", mode="before")
    @classmethod
    def _accept_aliases(cls, value):
        if isinstance(value, str) and value.strip().upper() in _LEVEL_ALIASES:
            return _LEVEL_ALIASES[value.strip().upper()]
        return value

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)


class VoteRequest(BaseModel):
    """Payload for POST /api/v1/reports/{id}/vote."""
    direction: Literal["up", "down"]

    @property
    def is_upvote(self) -> bool:
        return self.direction == "up"


# ── Responses ─────────────────────────────────────────────────────────────────

class NearbyResponse(BaseModel):
    """Response body for GET /api/v1/reports/nearby."""
    center: GeoPoint
    radius_km: float
    precision: int
    lower: str
    upper: str
    items: list[SafetyReport]
    count: int


class ReportListResponse(BaseModel):
    items: list[SafetyReport]
    count: int


class DeleteResponse(BaseModel):
    ok: bool
    id: str

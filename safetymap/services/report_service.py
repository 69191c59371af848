"""
report_service.py — Writes and simple reads on safety reports.

The service is the writer that keeps every stored report's geohash equal
to encode(location, settings.geohash_precision); the proximity index relies
on that and never re-checks it.

  submit  → validate, derive geohash, zero counters, stamp created_at
  vote    → atomic $inc in the store (no read-modify-write here)
  delete  → author only
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from safetymap.core.config import settings
from safetymap.core.errors import RecordNotFound, Unauthorized
from safetymap.models.report import SafetyReport, SubmitReportRequest
from safetymap.services.geocodec import encode
from safetymap.services.report_store import ReportStore

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(self, store: ReportStore, precision: Optional[int] = None) -> None:
        self.store = store
        self.precision = precision or settings.geohash_precision

    async def submit(
        self,
        author_id: str,
        payload: SubmitReportRequest,
        author_name: str = "Anonymous User",
    ) -> SafetyReport:
        geohash = encode(payload.latitude, payload.longitude, self.precision)
        doc = {
            "latitude": payload.latitude,
            "longitude": payload.longitude,
            "geohash": geohash,
            "area_name": payload.area_name,
            "level": payload.level.value,
            "comment": payload.comment,
            "author_id": author_id,
            "author_name": author_name,
            "upvotes": 0,
            "downvotes": 0,
            "radius_meters": payload.radius_meters,
            "created_at": datetime.now(tz=timezone.utc),
        }
        report = await self.store.insert(doc)
        logger.info("Report %s submitted at geohash %s", report.id, geohash)
        return report

    async def get(self, report_id: str) -> SafetyReport:
        report = await self.store.get(report_id)
        if report is None:
            raise RecordNotFound(report_id)
        return report

    async def recent(self, limit: Optional[int] = None) -> list[SafetyReport]:
        return await self.store.recent(limit or settings.recent_limit)

    async def vote(self, report_id: str, upvote: bool) -> SafetyReport:
        field = "upvotes" if upvote else "downvotes"
        report = await self.store.increment(report_id, field)
        logger.info("Recorded %s on report %s", field[:-1], report_id)
        return report

    async def delete(self, report_id: str, requester_id: str) -> None:
        report = await self.get(report_id)
        if report.author_id != requester_id:
            logger.warning("Unauthorized delete attempt on report %s", report_id)
            raise Unauthorized()
        if not await self.store.delete(report_id):
            # Deleted concurrently between the ownership check and now.
            raise RecordNotFound(report_id)
        logger.info("Report %s deleted by its author", report_id)

"""
report_store.py — The sorted, range-queryable report store.

ReportStore is the only thing the core knows about persistence: a key
space sorted by geohash that supports inclusive range scans, plus the
get / insert / increment / delete calls used by submission, voting and
deletion. MongoReportStore implements it on a Motor collection; tests
hand it an in-memory fake collection with the same async surface.

Document shape in the `safety_reports` collection:

  {
    "_id": ObjectId,
    "latitude": 40.7128, "longitude": -74.006,
    "geohash": "dr5regw",            ← precision 7, written by ReportService
    "area_name": "Union Square",
    "level": "BE_CAUTIOUS",
    "comment": "...",
    "author_id": "3f2c…", "author_name": "Anonymous User",
    "upvotes": 0, "downvotes": 0,
    "radius_meters": 500,
    "created_at": ISODate(...)
  }
"""

import logging
from typing import Any, Literal, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from safetymap.core.config import settings
from safetymap.core.errors import RecordNotFound, StoreUnavailable
from safetymap.models.geo import GeoPoint
from safetymap.models.report import SafetyReport

logger = logging.getLogger(__name__)

VoteField = Literal["upvotes", "downvotes"]


class ReportStore(Protocol):
    async def range_query(self, lower: str, upper: str, limit: int) -> list[SafetyReport]:
        """Reports with lower <= geohash <= upper, by geohash asc then created_at desc."""
        ...

    async def recent(self, limit: int) -> list[SafetyReport]: ...

    async def get(self, report_id: str) -> Optional[SafetyReport]: ...

    async def insert(self, doc: dict[str, Any]) -> SafetyReport: ...

    async def increment(self, report_id: str, field: VoteField) -> SafetyReport:
        """Atomically add 1 to *field*; RecordNotFound if the report is gone."""
        ...

    async def delete(self, report_id: str) -> bool: ...


# ── Helpers ───────────────────────────────────────────────────────────────────

def doc_to_report(doc: dict) -> SafetyReport:
    """Convert a raw MongoDB document to a SafetyReport."""
    return SafetyReport(
        id=str(doc["_id"]),
        location=GeoPoint(latitude=doc["latitude"], longitude=doc["longitude"]),
        area_name=doc.get("area_name", ""),
        level=doc.get("level"),
        comment=doc.get("comment", ""),
        author_id=doc.get("author_id", ""),
        author_name=doc.get("author_name") or "Anonymous User",
        created_at=doc.get("created_at"),
        upvotes=doc.get("upvotes", 0),
        downvotes=doc.get("downvotes", 0),
        radius_meters=doc.get("radius_meters", settings.default_report_radius_m),
        geohash=doc.get("geohash", ""),
    )


def _to_oid(report_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(report_id)
    except (InvalidId, TypeError):
        return None


# ── Motor implementation ──────────────────────────────────────────────────────

class MongoReportStore:
    """ReportStore backed by a Motor collection."""

    def __init__(self, collection) -> None:
        self._col = collection

    async def range_query(self, lower: str, upper: str, limit: int) -> list[SafetyReport]:
        query = {"geohash": {"$gte": lower, "$lte": upper}}
        try:
            cursor = (
                self._col.find(query)
                .sort([("geohash", ASCENDING), ("created_at", DESCENDING)])
                .limit(limit)
            )
            return await self._collect(cursor, "range query")
        except PyMongoError as exc:
            raise StoreUnavailable("range query", exc) from exc

    async def recent(self, limit: int) -> list[SafetyReport]:
        try:
            cursor = self._col.find({}).sort("created_at", DESCENDING).limit(limit)
            return await self._collect(cursor, "recent query")
        except PyMongoError as exc:
            raise StoreUnavailable("recent query", exc) from exc

    async def get(self, report_id: str) -> Optional[SafetyReport]:
        oid = _to_oid(report_id)
        if oid is None:
            return None
        try:
            doc = await self._col.find_one({"_id": oid})
        except PyMongoError as exc:
            raise StoreUnavailable("get", exc) from exc
        return doc_to_report(doc) if doc else None

    async def insert(self, doc: dict[str, Any]) -> SafetyReport:
        try:
            result = await self._col.insert_one(doc)
        except PyMongoError as exc:
            raise StoreUnavailable("insert", exc) from exc
        return doc_to_report({**doc, "_id": result.inserted_id})

    async def increment(self, report_id: str, field: VoteField) -> SafetyReport:
        oid = _to_oid(report_id)
        if oid is None:
            raise RecordNotFound(report_id)
        try:
            # No upsert: a vote on a deleted report must not resurrect it.
            doc = await self._col.find_one_and_update(
                {"_id": oid},
                {"$inc": {field: 1}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StoreUnavailable("vote", exc) from exc
        if doc is None:
            raise RecordNotFound(report_id)
        return doc_to_report(doc)

    async def delete(self, report_id: str) -> bool:
        oid = _to_oid(report_id)
        if oid is None:
            return False
        try:
            result = await self._col.delete_one({"_id": oid})
        except PyMongoError as exc:
            raise StoreUnavailable("delete", exc) from exc
        return result.deleted_count > 0

    @staticmethod
    async def _collect(cursor, operation: str) -> list[SafetyReport]:
        """Convert every document or fail the whole scan; never a partial list."""
        items = []
        async for doc in cursor:
            try:
                items.append(doc_to_report(doc))
            except (KeyError, ValueError) as exc:
                logger.error("Malformed report doc %s in %s: %s", doc.get("_id"), operation, exc)
                raise StoreUnavailable(operation, exc) from exc
        return items

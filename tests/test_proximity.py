"""
test_proximity.py — ProximityIndexQuery + MongoReportStore range scans.

Two kinds of store are used:
  * ListStore — returns whatever candidates it holds (in contract order)
    and records the window it was asked for; isolates the exact filter.
  * MongoReportStore over the in-memory FakeCollection — applies the real
    inclusive $gte/$lte window, so prefix edge effects show up.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from safetymap.core.errors import InvalidCoordinate, StoreUnavailable
from safetymap.models.geo import GeoPoint
from safetymap.models.report import SafetyReport
from safetymap.services.geocodec import bounds_for_radius, decode_bbox, encode, haversine_km
from safetymap.services.proximity import MAX_CANDIDATES, ProximityIndexQuery
from safetymap.services.report_store import MongoReportStore

CENTER = GeoPoint(latitude=40.0, longitude=-74.0)
KM_PER_DEG_LAT = 6371.0 * 3.141592653589793 / 180


def _report(rid, lat, lng, hours_ago=1):
    return SafetyReport(
        id=rid,
        location=GeoPoint(latitude=lat, longitude=lng),
        area_name=rid,
        level="SAFE",
        created_at=datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
        geohash=encode(lat, lng, 7),
    )


def _north_of_center(km):
    return CENTER.latitude + km / KM_PER_DEG_LAT


class ListStore:
    def __init__(self, reports):
        # Contract order: geohash asc, created_at desc
        self.reports = sorted(
            sorted(reports, key=lambda r: r.created_at, reverse=True),
            key=lambda r: r.geohash,
        )
        self.calls = []

    async def range_query(self, lower, upper, limit):
        self.calls.append((lower, upper, limit))
        return self.reports[:limit]


class FailingStore:
    async def range_query(self, lower, upper, limit):
        raise ConnectionError("socket closed")


class SlowStore:
    def __init__(self):
        self.cancelled = False

    async def range_query(self, lower, upper, limit):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return []


# ── Exact filter ─────────────────────────────────────────────────────────────

class TestFindNearby:
    async def test_end_to_end_keeps_reports_inside_radius(self):
        near = _report("near-2km", _north_of_center(2), CENTER.longitude, hours_ago=2)
        mid = _report("mid-9km", _north_of_center(9), CENTER.longitude, hours_ago=1)
        far = _report("far-15km", _north_of_center(15), CENTER.longitude, hours_ago=3)
        store = ListStore([far, near, mid])

        result = await ProximityIndexQuery(store).find_nearby(CENTER, 10)

        assert {r.id for r in result} == {"near-2km", "mid-9km"}
        assert [r.id for r in result] == [r.id for r in store.reports if r.id != "far-15km"]

    async def test_store_called_with_tiered_window_and_cap(self):
        store = ListStore([])
        await ProximityIndexQuery(store).find_nearby(CENTER, 10)

        window = bounds_for_radius(CENTER, 10)
        assert store.calls == [(window.lower, window.upper, MAX_CANDIDATES)]
        assert window.precision == 6

    async def test_default_radius_is_50_km(self):
        store = ListStore([])
        await ProximityIndexQuery(store).find_nearby(CENTER)

        lower, upper, _ = store.calls[0]
        assert len(lower) == 5  # 50 km → precision 5

    async def test_boundary_distance_is_inclusive(self):
        r = _report("edge", _north_of_center(3), CENTER.longitude)
        radius = haversine_km(CENTER, r.location)
        result = await ProximityIndexQuery(ListStore([r])).find_nearby(CENTER, radius)
        assert [x.id for x in result] == ["edge"]

    async def test_empty_store_is_not_an_error(self):
        assert await ProximityIndexQuery(ListStore([])).find_nearby(CENTER, 5) == []

    async def test_search_returns_window(self):
        _, window = await ProximityIndexQuery(ListStore([])).search(CENTER, 150)
        assert window.precision == 4

    async def test_invalid_center_rejected_before_query(self):
        store = ListStore([])
        center = GeoPoint.model_construct(latitude=120.0, longitude=0.0)
        with pytest.raises(InvalidCoordinate):
            await ProximityIndexQuery(store).find_nearby(center, 5)
        assert store.calls == []


# ── Failures ─────────────────────────────────────────────────────────────────

class TestFailures:
    async def test_store_failure_surfaces_typed_with_cause(self):
        with pytest.raises(StoreUnavailable) as info:
            await ProximityIndexQuery(FailingStore()).find_nearby(CENTER, 5)
        assert isinstance(info.value.cause, ConnectionError)
        assert isinstance(info.value.__cause__, ConnectionError)

    async def test_mongo_error_wrapped_by_store(self):
        class BrokenCollection:
            def find(self, _query):
                raise ServerSelectionTimeoutError("no servers")

        with pytest.raises(StoreUnavailable) as info:
            await ProximityIndexQuery(MongoReportStore(BrokenCollection())).find_nearby(CENTER, 5)
        assert isinstance(info.value.cause, ServerSelectionTimeoutError)

    async def test_cancellation_reaches_the_store(self):
        store = SlowStore()
        task = asyncio.ensure_future(ProximityIndexQuery(store).find_nearby(CENTER, 5))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert store.cancelled


# ── Real range window (FakeCollection) ────────────────────────────────────────

class TestRangeWindow:
    async def test_reports_in_centre_cell_are_found(self, reports_col, make_doc):
        await reports_col.insert_one(make_doc(CENTER.latitude, CENTER.longitude, area_name="here"))
        query = ProximityIndexQuery(MongoReportStore(reports_col))

        result = await query.find_nearby(CENTER, 1)
        assert [r.area_name for r in result] == ["here"]

    async def test_window_candidate_outside_radius_is_filtered(self, reports_col, make_doc):
        # Opposite corners of one precision-7 cell: same window, ~190 m apart.
        lat_min, lat_max, lon_min, lon_max = decode_bbox(encode(40.0, -74.0, 7))
        center = GeoPoint(latitude=lat_min + 1e-6, longitude=lon_min + 1e-6)
        await reports_col.insert_one(make_doc(lat_max - 1e-6, lon_max - 1e-6, area_name="corner"))

        store = MongoReportStore(reports_col)
        window = bounds_for_radius(center, 0.1)
        candidates = await store.range_query(window.lower, window.upper, 100)
        assert [r.area_name for r in candidates] == ["corner"]

        assert await ProximityIndexQuery(store).find_nearby(center, 0.1) == []

    async def test_report_across_cell_edge_is_missed(self, reports_col, make_doc):
        """Known recall loss of the single-window scheme: kept, not fixed."""
        lat_min, lat_max, lon_min, lon_max = decode_bbox(encode(40.0, -74.0, 7))
        lng = (lon_min + lon_max) / 2
        center = GeoPoint(latitude=lat_max - 1e-6, longitude=lng)
        await reports_col.insert_one(make_doc(lat_max + 1e-6, lng, area_name="next door"))

        assert await ProximityIndexQuery(MongoReportStore(reports_col)).find_nearby(center, 1) == []

    async def test_same_geohash_ordered_newest_first(self, reports_col, make_doc):
        now = datetime.now(tz=timezone.utc)
        for name, hours in (("old", 5), ("newest", 1), ("middle", 3)):
            await reports_col.insert_one(
                make_doc(CENTER.latitude, CENTER.longitude, area_name=name, created_at=now - timedelta(hours=hours))
            )

        result = await ProximityIndexQuery(MongoReportStore(reports_col)).find_nearby(CENTER, 1)
        assert [r.area_name for r in result] == ["newest", "middle", "old"]

    async def test_candidate_cap_applied(self, reports_col, make_doc):
        for i in range(5):
            await reports_col.insert_one(make_doc(CENTER.latitude, CENTER.longitude, area_name=f"r{i}"))

        query = ProximityIndexQuery(MongoReportStore(reports_col), limit=3)
        assert len(await query.find_nearby(CENTER, 1)) == 3

    async def test_malformed_document_fails_the_whole_scan(self, reports_col, make_doc):
        await reports_col.insert_one(make_doc(CENTER.latitude, CENTER.longitude, area_name="good"))
        await reports_col.insert_one(make_doc(CENTER.latitude, CENTER.longitude, area_name="bad", upvotes=-3))

        with pytest.raises(StoreUnavailable) as info:
            await ProximityIndexQuery(MongoReportStore(reports_col)).find_nearby(CENTER, 1)
        assert info.value.operation == "range query"
        assert isinstance(info.value.__cause__, ValueError)

    async def test_document_missing_coordinates_fails_recent(self, reports_col, make_doc):
        doc = make_doc(CENTER.latitude, CENTER.longitude)
        del doc["latitude"]
        await reports_col.insert_one(doc)

        with pytest.raises(StoreUnavailable) as info:
            await MongoReportStore(reports_col).recent(10)
        assert isinstance(info.value.cause, KeyError)

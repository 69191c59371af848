"""
pytest configuration and shared fixtures for the SafetyMap API tests.

Key concern: tests must not require a live MongoDB. We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.
  3. Overriding get_db with an in-memory FakeDB for route tests. The fake
     understands the handful of Motor calls MongoReportStore makes,
     including inclusive $gte/$lte range scans and multi-key sorts, so
     route tests exercise the real store adapter.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo import ReturnDocument

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")


# ── In-memory MongoDB emulator ─────────────────────────────────────────────────

def _sort_value(value):
    # MongoDB orders null before every other value.
    return (0, 0) if value is None else (1, value)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._limit_n = None

    def sort(self, key, direction=None):
        keys = [(key, direction or 1)] if isinstance(key, str) else list(key)
        # Stable sorts applied from the least significant key.
        for field, order in reversed(keys):
            self._docs.sort(key=lambda d: _sort_value(d.get(field)), reverse=order < 0)
        return self

    def limit(self, n):
        self._limit_n = n
        return self

    async def __aiter__(self):
        docs = self._docs if self._limit_n is None else self._docs[: self._limit_n]
        for doc in docs:
            yield doc


class FakeCollection:
    """Minimal async-compatible replica of a Motor collection."""

    def __init__(self):
        self._docs: dict[str, dict] = {}
        self.indexes: list = []

    async def create_index(self, keys, name=None):
        self.indexes.append((keys, name))
        return name

    async def index_information(self):
        info = {"_id_": {"key": [("_id", 1)]}}
        for keys, name in self.indexes:
            info[name] = {"key": keys}
        return info

    def find(self, query=None):
        query = query or {}
        return FakeCursor([dict(d) for d in self._docs.values() if self._matches(d, query)])

    async def find_one(self, query):
        for doc in self._docs.values():
            if self._matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        oid = ObjectId()
        self._docs[str(oid)] = {**doc, "_id": oid}
        result = MagicMock()
        result.inserted_id = oid
        return result

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        for doc in self._docs.values():
            if self._matches(doc, query):
                before = dict(doc)
                for field, amount in update.get("$inc", {}).items():
                    doc[field] = doc.get(field, 0) + amount
                return dict(doc) if return_document == ReturnDocument.AFTER else before
        return None

    async def delete_one(self, query):
        result = MagicMock()
        result.deleted_count = 0
        for key, doc in list(self._docs.items()):
            if self._matches(doc, query):
                del self._docs[key]
                result.deleted_count = 1
                break
        return result

    @staticmethod
    def _matches(doc, query):
        for key, cond in query.items():
            value = doc.get(key)
            if isinstance(cond, dict):
                if "$gte" in cond and (value is None or value < cond["$gte"]):
                    return False
                if "$lte" in cond and (value is None or value > cond["$lte"]):
                    return False
            elif value != cond:
                return False
        return True


class FakeDB:
    """Fake MongoDB database — lazily creates collections."""

    def __init__(self):
        self._cols: dict[str, FakeCollection] = {}

    def __getitem__(self, name):
        if name not in self._cols:
            self._cols[name] = FakeCollection()
        return self._cols[name]


def report_doc(lat, lng, **overrides):
    """Build a stored-report document the way ReportService writes one."""
    from safetymap.services.geocodec import encode

    doc = {
        "latitude": lat,
        "longitude": lng,
        "geohash": encode(lat, lng, 7),
        "area_name": "Test Area",
        "level": "SAFE",
        "comment": "",
        "author_id": "author-1",
        "author_name": "Anonymous User",
        "upvotes": 0,
        "downvotes": 0,
        "radius_meters": 500,
        "created_at": datetime.now(tz=timezone.utc) - timedelta(hours=1),
    }
    doc.update(overrides)
    return doc


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo → no-op AsyncMock (startup doesn't attempt real connection)
    - close_mongo_connection → no-op AsyncMock
    - db_client.client / db_client.db → None
    """
    with (
        patch("safetymap.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("safetymap.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import safetymap.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """In-memory rate-limit counters must not bleed between tests."""
    from safetymap.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture()
def fake_db():
    """Fresh in-memory DB for each test."""
    return FakeDB()


@pytest.fixture()
def make_doc():
    return report_doc


@pytest.fixture()
def reports_col(fake_db):
    from safetymap.core.config import settings

    return fake_db[settings.reports_collection]


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 — mock_db must run first
    """HTTPX client against the app with no database (get_db → None)."""
    from safetymap.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def api_client(fake_db):
    """HTTPX client with get_db overridden to use the in-memory FakeDB."""
    from safetymap.core.database import get_db
    from safetymap.main import app

    app.dependency_overrides[get_db] = lambda: fake_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def auth_headers(api_client):
    """Bearer header for a freshly minted anonymous author."""
    r = await api_client.post("/auth/anonymous")
    return {"Authorization": f"Bearer {r.json()['access_token']}"}

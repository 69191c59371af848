"""
MongoDB connection management using Motor (async driver).

Architecture decision: one DatabaseClient instance per process, opened in
FastAPI's lifespan and handed to routes through the get_db() dependency.
Nothing below the routes layer touches it: services receive a collection
(wrapped in MongoReportStore) through their constructors, so they can be
tested against an in-memory fake.

Local dev: connects to the Docker Compose mongo container.
Production: connects to MongoDB Atlas (same code, different URI).
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from safetymap.core.config import settings

logger = logging.getLogger(__name__)

# Range scans order by (geohash asc, created_at desc); this compound index
# serves both the bounds and the sort without an in-memory sort stage.
REPORT_INDEXES = [
    ([("geohash", ASCENDING), ("created_at", DESCENDING)], "geohash_created_at"),
    ([("created_at", DESCENDING)], "created_at"),
]


class DatabaseClient:
    """
    Holds the Motor client and selected database.

    Tests replace .client and .db directly.
    """

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


db_client = DatabaseClient()


async def connect_to_mongo() -> None:
    """
    Create the MongoDB connection, validate it with a ping and make sure
    the report indexes exist.

    Fails gracefully if MongoDB is unavailable — the API still answers
    /health, and DB-dependent endpoints return 503.
    """
    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        db_client.client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            tlsCAFile=certifi.where(),
        )
        db_client.db = db_client.client[settings.mongo_db_name]
        await db_client.client.admin.command("ping")
        await ensure_indexes(db_client.db)
        logger.info("MongoDB connection established (db: %s)", settings.mongo_db_name)
    except Exception as exc:
        logger.warning(
            "MongoDB unavailable at startup: %s. "
            "API running in degraded mode — DB endpoints will fail.",
            exc,
        )
        db_client.client = None
        db_client.db = None


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the report indexes (no-op when they already exist)."""
    collection = db[settings.reports_collection]
    for keys, name in REPORT_INDEXES:
        await collection.create_index(keys, name=name)
    logger.debug("Indexes ensured on %s", settings.reports_collection)


async def close_mongo_connection() -> None:
    """Close the MongoDB connection gracefully on app shutdown."""
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency — inject the database into route handlers.

    Returns None when MongoDB is unavailable; routes answer 503 in that
    case instead of crashing.
    """
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)

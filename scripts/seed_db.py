#!/usr/bin/env python3
"""
seed_db.py — Populate MongoDB with sample safety reports for local development.

Inserts:
  - A handful of reports around lower Manhattan, at a spread of distances
  - Creates the (geohash, created_at) index the nearby search relies on

Usage:
    python scripts/seed_db.py

Requires:
    pip install -e .
    MongoDB running locally (or set MONGO_URI env var)

Safe to re-run: deletes seed data first, then re-inserts.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

ROOT = Path(__file__).resolve().parent.parent
load_dotenv(ROOT / ".env")

from safetymap.core.config import settings
from safetymap.core.database import ensure_indexes
from safetymap.services.geocodec import encode

SEED_AUTHOR = "seed-script"

# (lat, lng, area, level, comment, hours ago)
SAMPLE_REPORTS = [
    (40.7128, -74.0060, "City Hall",         "SAFE",        "Busy and well lit all evening.",          2),
    (40.7359, -73.9911, "Union Square",      "BE_CAUTIOUS", "Crowded at night, watch your bag.",       5),
    (40.7580, -73.9855, "Times Square",      "BE_CAUTIOUS", "Pickpockets reported near the TKTS steps.", 1),
    (40.7033, -74.0170, "Battery Park",      "SAFE",        "Park rangers around until 9pm.",          12),
    (40.7210, -74.0040, "Canal Street",      "UNSAFE",      "Aggressive street vendors after dark.",   8),
    (40.6892, -74.0445, "Liberty Island",    "SAFE",        "Security screening at the ferry.",        30),
    (40.8116, -73.9465, "Harlem 125th St",   "UNSAFE",      "Poorly lit side streets east of Lenox.",  20),
    (40.6782, -73.9442, "Crown Heights",     "DANGEROUS",   "Incident reported near the subway exit.", 3),
]


def _doc(lat, lng, area, level, comment, hours_ago):
    return {
        "latitude": lat,
        "longitude": lng,
        "geohash": encode(lat, lng, settings.geohash_precision),
        "area_name": area,
        "level": level,
        "comment": comment,
        "author_id": SEED_AUTHOR,
        "author_name": "Seed Data",
        "upvotes": 0,
        "downvotes": 0,
        "radius_meters": settings.default_report_radius_m,
        "created_at": datetime.now(timezone.utc) - timedelta(hours=hours_ago),
    }


async def seed() -> None:
    print("Connecting to MongoDB...")
    client = AsyncIOMotorClient(settings.mongo_uri)
    db = client[settings.mongo_db_name]
    collection = db[settings.reports_collection]

    try:
        await client.admin.command("ping")
        print("Connected.")

        # ─── Clean up previous seed data ──────────────────────────────────────
        deleted = await collection.delete_many({"author_id": SEED_AUTHOR})
        print(f"Removed {deleted.deleted_count} existing seed reports.")

        # ─── Insert sample reports ────────────────────────────────────────────
        result = await collection.insert_many([_doc(*row) for row in SAMPLE_REPORTS])
        print(f"Inserted {len(result.inserted_ids)} reports.")

        await ensure_indexes(db)
        print("Indexes ensured.")

        print("\nSeed complete! Reports per level:")
        pipeline = [{"$group": {"_id": "$level", "count": {"$sum": 1}}}]
        async for doc in collection.aggregate(pipeline):
            print(f"  {doc['_id']}: {doc['count']} reports")

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed())

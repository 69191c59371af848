"""
health.py — Liveness and readiness of the report store.

GET /health always answers 200 while the process is up. The body says
whether MongoDB answered a ping and whether the safety_reports collection
carries the indexes the nearby search scans (see REPORT_INDEXES). A
missing geohash_created_at index still works but turns every range scan
into a collection scan, so it is reported as "degraded".

    {"status": "ok", "database": "connected",
     "reports_index": "ready", "missing_indexes": [], ...}
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from safetymap import __version__
from safetymap.core import database as db_module
from safetymap.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str                 # "ok" | "degraded"
    version: str
    environment: str
    database: str               # "connected" | "disconnected"
    reports_index: str          # "ready" | "missing" | "unknown"
    missing_indexes: list[str] = Field(default_factory=list)


async def missing_report_indexes(db) -> list[str]:
    """Names from REPORT_INDEXES that the reports collection does not have."""
    existing = await db[settings.reports_collection].index_information()
    return [name for _, name in db_module.REPORT_INDEXES if name not in existing]


@router.get("", response_model=HealthResponse, summary="API and report store health")
async def health_check() -> HealthResponse:
    database = "disconnected"
    reports_index = "unknown"
    missing: list[str] = []

    # Looked up through the module so tests can swap db_client.client / .db
    client = db_module.db_client.client
    if client is not None:
        try:
            await client.admin.command("ping")
            database = "connected"
            if db_module.db_client.db is not None:
                missing = await missing_report_indexes(db_module.db_client.db)
                reports_index = "missing" if missing else "ready"
        except PyMongoError as exc:
            logger.warning("Health check against MongoDB failed: %s", exc)

    if missing:
        logger.warning("Reports collection lacks indexes: %s", ", ".join(missing))

    return HealthResponse(
        status="degraded" if missing else "ok",
        version=__version__,
        environment=settings.environment,
        database=database,
        reports_index=reports_index,
        missing_indexes=missing,
    )

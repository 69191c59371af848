"""
deps.py — Shared FastAPI dependencies for the report routes.

Services are built per request from the injected database handle, so
tests can swap the database with app.dependency_overrides[get_db] and
exercise the real MongoReportStore against an in-memory fake.
"""

from typing import Annotated

from fastapi import Depends, HTTPException

from safetymap.core.config import settings
from safetymap.core.database import get_db
from safetymap.services.proximity import ProximityIndexQuery
from safetymap.services.report_service import ReportService
from safetymap.services.report_store import MongoReportStore


def get_report_store(db=Depends(get_db)) -> MongoReportStore:
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return MongoReportStore(db[settings.reports_collection])


def get_report_service(store: MongoReportStore = Depends(get_report_store)) -> ReportService:
    return ReportService(store)


def get_proximity_query(store: MongoReportStore = Depends(get_report_store)) -> ProximityIndexQuery:
    return ProximityIndexQuery.from_settings(store)


ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]
ProximityDep = Annotated[ProximityIndexQuery, Depends(get_proximity_query)]

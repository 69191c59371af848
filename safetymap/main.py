"""
SafetyMap API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups,
maps domain errors to HTTP responses, and manages the MongoDB
connection lifecycle.

Run locally:
    uvicorn safetymap.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from safetymap import __version__
from safetymap.core import database
from safetymap.core.config import settings
from safetymap.core.errors import SafetyMapError
from safetymap.core.rate_limit import limiter
from safetymap.routes.auth import router as auth_router
from safetymap.routes.health import router as health_router
from safetymap.routes.map import router as map_router
from safetymap.routes.reports import router as reports_router

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage startup and shutdown lifecycle.

    Code before `yield` runs on startup; code after runs on shutdown.
    Looked up through the module so tests can patch the connect/close calls.
    """
    logger.info("Starting SafetyMap API (env: %s)", settings.environment)
    await database.connect_to_mongo()
    yield
    logger.info("Shutting down SafetyMap API")
    await database.close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="SafetyMap API",
    description=(
        "Location-tagged safety reports: submit, vote, search nearby, and "
        "reconcile what a map client displays."
    ),
    version=__version__,
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt-in with @limiter.limit(...) + request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ─── Domain errors ─────────────────────────────────────────────────────────────
@app.exception_handler(SafetyMapError)
async def safety_map_error_handler(request: Request, exc: SafetyMapError):
    """One displayable message per failure, in FastAPI's usual error shape."""
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(map_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "SafetyMap API",
        "version": __version__,
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }

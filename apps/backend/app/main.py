"""
TideWatch API — Application entry point.

Bootstraps FastAPI, wires up middleware, registers route groups,
and manages the MongoDB connection and background pipeline lifecycle.

Background pieces owned by the lifespan:
  - ClassificationWorker  — classifies each ingested report off the request path
  - HotspotPublisher      — debounced hotspot recomputation + WebSocket fan-out

Extension points:
  - Add new route groups with app.include_router() below
  - Change startup behaviour in the lifespan context manager
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.database import close_mongo_connection, connect_to_mongo, get_db
from app.core.rate_limit import limiter
from app.routes.classify import router as classify_router
from app.routes.health import router as health_router
from app.routes.hotspots import router as hotspots_router
from app.routes.reports import router as reports_router
from app.routes.social import router as social_router
from app.services.classification_worker import get_classification_worker
from app.services.hotspot_publisher import get_hotspot_publisher
from app.services.report_repository import load_reports

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
    Startup: connect to MongoDB and compute the initial hotspot list.
    Shutdown: let in-flight classifications finish, stop the publisher,
    then close the connection.
    """
    logger.info("Starting TideWatch API (env: %s)", settings.environment)
    await connect_to_mongo()

    db = get_db()
    if db is not None:
        try:
            await get_hotspot_publisher().refresh(lambda: load_reports(db))
        except Exception as exc:
            logger.error("Initial hotspot computation failed: %s", exc)

    yield

    logger.info("Shutting down TideWatch API")
    await get_classification_worker().drain()
    await get_hotspot_publisher().close()
    await close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="TideWatch API",
    description=(
        "Crowd-sourced ocean hazard reporting: report ingestion, AI-assisted "
        "classification with keyword fallback, and live hotspot clustering."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt in with @limiter.limit("N/minute") + a request: Request parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

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

# Ingestion + archive
app.include_router(reports_router)

# Classifier (direct access for dashboards and tooling)
app.include_router(classify_router)

# Hotspots (REST + WebSocket stream)
app.include_router(hotspots_router)

# Simulated social feed
app.include_router(social_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "TideWatch API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }

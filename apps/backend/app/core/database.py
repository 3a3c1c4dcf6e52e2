"""
MongoDB connection management using Motor (async driver).

Architecture decision: single DatabaseClient instance shared across all
requests via a module-level holder. FastAPI's dependency injection
(get_db) gives routes clean access without importing the holder directly.

Collections:
  reports        ← ingested hazard reports (+ classification verdicts)
  social_posts   ← simulated social feed
  offline_queue  ← field agent's local submission queue (agent side only)

The connection is opened in FastAPI's lifespan (startup) and closed
on shutdown.
"""

import logging
import re

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseClient:
    """
    Holds the Motor client and selected database.

    A class rather than bare globals so tests can replace .client and .db
    on the instance.
    """

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None


db_client = DatabaseClient()


def _tls_kwargs(uri: str) -> dict:
    # certifi's CA bundle for Atlas / TLS URIs; plain local mongod needs none.
    if uri.startswith("mongodb+srv://") or "tls=true" in uri.lower():
        return {"tlsCAFile": certifi.where()}
    return {}


async def connect_to_mongo() -> None:
    """
    Create the MongoDB connection and validate it with a ping.

    Called once at app startup (via lifespan). Fails gracefully if
    MongoDB is unavailable — the API still answers, DB-dependent
    endpoints return 503, and the health check reports the real status.
    """
    logger.info("Connecting to MongoDB at %s", _redact_uri(settings.mongo_uri))
    try:
        db_client.client = AsyncIOMotorClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            **_tls_kwargs(settings.mongo_uri),
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


async def close_mongo_connection() -> None:
    """Close the MongoDB connection gracefully on app shutdown."""
    if db_client.client is not None:
        db_client.client.close()
        logger.info("MongoDB connection closed")


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Idempotent index creation for the server-side collections."""
    await db["reports"].create_index([("created_at", DESCENDING)])
    await db["reports"].create_index([("status", ASCENDING)])
    await db["social_posts"].create_index(
        [("ai_analysis_complete", ASCENDING), ("post_timestamp", DESCENDING)]
    )


def get_db() -> AsyncIOMotorDatabase | None:
    """
    FastAPI dependency — inject the database into route handlers.

    Returns None when MongoDB is unavailable so routes can answer 503
    (or degrade) rather than crash.
    """
    return db_client.db


def _redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:]+:[^@]+@", "://<redacted>@", uri)

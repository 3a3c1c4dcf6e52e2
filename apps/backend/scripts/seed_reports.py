#!/usr/bin/env python3
"""
seed_reports.py — Populate MongoDB with demo ocean-hazard reports.

Usage (from apps/backend/):
    python scripts/seed_reports.py             # replace existing reports
    python scripts/seed_reports.py --append    # add without clearing first
    python scripts/seed_reports.py --social 20 # also insert 20 simulated social posts

Prerequisites:
    • MONGO_URI env var set (or .env file present)

What this script creates
────────────────────────
  reports       ← tight clusters along the Indian coastline (each ≥ 3 reports
                  within 5 km, so they show up as hotspots) plus scattered
                  single reports that should NOT form hotspots
  social_posts  ← optional simulated feed (--social N)
  indexes       ← same indexes the API creates on startup

Severity and status are pre-filled ("verified") so the map is populated
without waiting for the classifier.
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

from motor.motor_asyncio import AsyncIOMotorClient  # noqa: E402

from app.core.database import _tls_kwargs, ensure_indexes  # noqa: E402
from app.services.report_repository import REPORTS  # noqa: E402
from app.services.social_analysis import SOCIAL_POSTS, make_simulated_posts  # noqa: E402

MONGO_URI = os.environ.get("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.environ.get("MONGO_DB_NAME", "tidewatch")

# ── Seed clusters ─────────────────────────────────────────────────────────────
# Columns: label, lat, lon, hazard_type, size, severity range, description
_CLUSTERS = [
    ("Marina Beach, Chennai",   13.0500, 80.2824, "high-waves",       5, (6, 9), "Huge waves crashing over the promenade, people evacuating the beach"),
    ("Juhu, Mumbai",            19.0988, 72.8267, "coastal-flooding", 4, (4, 7), "Flood water entering houses near the shore after the storm surge"),
    ("Puri",                    19.7983, 85.8249, "unusual-tide",     3, (3, 5), "Tide receded very far out, unusual for this time of day"),
    ("Digha",                   21.6266, 87.5074, "coastal-erosion",  3, (3, 6), "Erosion has taken part of the sea wall, damage visible"),
    ("Visakhapatnam RK Beach",  17.7145, 83.3237, "tsunami-sighting", 4, (8, 10), "Tsunami warning siren, water pulling back fast, emergency"),
]

_SCATTERED = [
    ("Kochi",     9.9312, 76.2673, "high-waves", 4, "Rough sea and strong waves near the harbour"),
    ("Goa",      15.2993, 74.1240, "other",      2, "Lots of debris washed up on the beach"),
    ("Kanyakumari", 8.0883, 77.5385, "unusual-tide", 3, "Tide higher than usual at the rocks"),
]

_JITTER_DEG = 0.01  # ≈ 1.1 km, keeps every cluster member within 5 km of its anchor


def _make_report(lat: float, lon: float, hazard_type: str, severity: int,
                 description: str, hours_ago: float) -> dict:
    return {
        "latitude": lat,
        "longitude": lon,
        "hazard_type": hazard_type,
        "description": description,
        "severity_score": severity,
        "status": "verified",
        "language": "en",
        "image_url": None,
        "video_url": None,
        "user_id": None,
        "ai_reasoning": "Seeded demo report",
        "created_at": datetime.now(tz=timezone.utc) - timedelta(hours=hours_ago),
    }


def build_seed_reports(rng: random.Random) -> list[dict]:
    docs = []
    for _label, lat, lon, hazard_type, size, (lo, hi), description in _CLUSTERS:
        for _ in range(size):
            docs.append(_make_report(
                lat + rng.uniform(-_JITTER_DEG, _JITTER_DEG),
                lon + rng.uniform(-_JITTER_DEG, _JITTER_DEG),
                hazard_type,
                rng.randint(lo, hi),
                description,
                hours_ago=rng.uniform(0.5, 36),
            ))
    for _label, lat, lon, hazard_type, severity, description in _SCATTERED:
        docs.append(_make_report(lat, lon, hazard_type, severity, description, hours_ago=rng.uniform(0.5, 12)))
    return docs


async def seed(append: bool = False, social: int = 0) -> None:
    client = AsyncIOMotorClient(MONGO_URI, **_tls_kwargs(MONGO_URI))
    db = client[MONGO_DB_NAME]

    try:
        await client.admin.command("ping")
        print(f"Connected to MongoDB ({MONGO_DB_NAME})")
    except Exception as exc:
        print(f"ERROR: Cannot connect to MongoDB: {exc}")
        return

    if not append:
        print("\nClearing existing reports…")
        result = await db[REPORTS].delete_many({})
        print(f"  Deleted {result.deleted_count} existing documents")

    print("\nInserting reports…")
    docs = build_seed_reports(random.Random())
    result = await db[REPORTS].insert_many(docs)
    print(f"  Inserted {len(result.inserted_ids)} reports "
          f"({len(_CLUSTERS)} clusters, {len(_SCATTERED)} scattered)")

    if social:
        posts = make_simulated_posts(social)
        await db[SOCIAL_POSTS].insert_many(posts)
        print(f"  Inserted {len(posts)} simulated social posts")

    print("\nEnsuring indexes…")
    await ensure_indexes(db)

    total = await db[REPORTS].count_documents({})
    hazard_types = await db[REPORTS].distinct("hazard_type")
    print("\n✓ Done")
    print(f"  reports total : {total}")
    print(f"  Hazard types  : {sorted(hazard_types)}")

    client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed TideWatch demo reports into MongoDB")
    parser.add_argument("--append", action="store_true", help="Add reports without clearing existing data first")
    parser.add_argument("--social", type=int, default=0, metavar="N", help="Also insert N simulated social posts")
    args = parser.parse_args()

    print(f"TideWatch Report Seeder  (db: {MONGO_DB_NAME})")
    print(f"Mode: {'append' if args.append else 'replace'}\n")

    asyncio.run(seed(append=args.append, social=args.social))

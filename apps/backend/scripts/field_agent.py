#!/usr/bin/env python3
"""
field_agent.py — Run the offline-first submission path against a TideWatch server.

Usage (from apps/backend/):
    python scripts/field_agent.py                       # probe + auto-sync until Ctrl-C
    python scripts/field_agent.py --submit 13.05 80.28 high-waves "Huge waves at the beach"
    python scripts/field_agent.py --sync-once           # drain the queue once and exit
    python scripts/field_agent.py --list                # show queued entries
    python scripts/field_agent.py --purge               # delete entries already synced

The queue lives in MongoDB (OFFLINE_QUEUE_COLLECTION, default "offline_queue")
so it survives restarts; --memory keeps it in-process instead, which is
only useful together with --submit for a quick demo.

Settings read from the environment / .env:
    INGESTION_BASE_URL                   server to sync to (default http://localhost:8000)
    MONGO_URI / MONGO_DB_NAME            where the local queue is stored
    CONNECTIVITY_PROBE_INTERVAL_SECONDS  /health probe period
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

from motor.motor_asyncio import AsyncIOMotorClient  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.database import _tls_kwargs  # noqa: E402
from app.core.errors import TideWatchError  # noqa: E402
from app.offline.connectivity import ConnectivityMonitor  # noqa: E402
from app.offline.field_reporter import FieldReporter  # noqa: E402
from app.offline.ingestion_client import IngestionClient  # noqa: E402
from app.offline.queue_store import InMemoryQueueStore, MongoQueueStore, QueueStore  # noqa: E402
from app.offline.submission_queue import SubmissionQueue  # noqa: E402
from app.offline.sync_coordinator import SyncCoordinator  # noqa: E402

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger("field_agent")


async def _open_store(use_memory: bool) -> tuple[QueueStore, AsyncIOMotorClient | None]:
    if use_memory:
        return InMemoryQueueStore(), None
    mongo = AsyncIOMotorClient(settings.mongo_uri, serverSelectionTimeoutMS=5000, **_tls_kwargs(settings.mongo_uri))
    store = MongoQueueStore(mongo[settings.mongo_db_name][settings.offline_queue_collection])
    await store.ensure_indexes()
    return store, mongo


async def main(args: argparse.Namespace) -> int:
    store, mongo = await _open_store(args.memory)
    queue = SubmissionQueue(store)
    client = IngestionClient(base_url=args.server)
    coordinator = SyncCoordinator(queue, client)
    monitor = ConnectivityMonitor(client, coordinator)

    try:
        if args.purge:
            removed = await queue.purge_synced()
            print(f"Purged {removed} synced entr{'y' if removed == 1 else 'ies'}")
            return 0

        if args.list:
            entries = await queue.get_all()
            for entry in entries:
                state = "synced" if entry.synced else "queued"
                print(f"{entry.local_id}  {state:6}  {entry.payload.hazard_type.value:18} "
                      f"({entry.payload.latitude:.4f}, {entry.payload.longitude:.4f})")
            print(f"{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
            return 0

        if args.submit:
            lat, lon, hazard_type, description = args.submit
            await monitor.check()
            reporter = FieldReporter(queue, client, monitor)
            try:
                outcome = await reporter.submit({
                    "latitude": lat,
                    "longitude": lon,
                    "hazard_type": hazard_type,
                    "description": description,
                })
            except TideWatchError as exc:
                print(f"ERROR: {exc}")
                return 1
            if outcome.queued:
                print(f"Offline — queued as {outcome.local_id}")
            else:
                print(f"Submitted — server id {outcome.server_id}")
            if monitor.is_online:
                await coordinator.sync()
            return 0

        if args.sync_once:
            result = await coordinator.sync()
            print(f"Synced {result.synced}, failed {result.failed}, skipped {result.skipped}")
            return 1 if result.failed else 0

        await monitor.run()
        return 0
    finally:
        if mongo is not None:
            mongo.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="TideWatch field agent (offline queue + auto-sync)")
    parser.add_argument("--server", default=None, help="Ingestion server base URL (default: INGESTION_BASE_URL)")
    parser.add_argument("--memory", action="store_true", help="Keep the queue in memory instead of MongoDB")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--submit", nargs=4, metavar=("LAT", "LON", "HAZARD_TYPE", "DESCRIPTION"),
                      help="Submit one report (queued if the server is unreachable)")
    mode.add_argument("--sync-once", action="store_true", help="Drain the queue once and exit")
    mode.add_argument("--list", action="store_true", help="List queued entries")
    mode.add_argument("--purge", action="store_true", help="Delete entries that are already synced")
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        logger.info("Field agent stopped")

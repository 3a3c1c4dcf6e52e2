"""
pytest configuration and shared fixtures for the TideWatch API tests.

Key concern: tests must not require a live MongoDB or Gemini API key.
We achieve this by:
  1. Patching connect_to_mongo / close_mongo_connection to no-ops so
     FastAPI's lifespan doesn't try to reach a real database.
  2. Setting db_client.client = None (disconnected) so health check
     correctly reports "disconnected" — a valid test-mode state.
  3. Ensuring AI_MOCK_MODE=true so GeminiClient returns canned responses.
  4. Giving every test its own HotspotPublisher (short debounce window)
     and ClassificationWorker, so background tasks never leak across tests.

Routes that need data use the in-memory FakeDB below via
app.dependency_overrides[get_db].
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")


# ── FakeDB ───────────────────────────────────────────────────────────────────
# Just enough of the Motor collection API for the repository, the social
# feed and MongoQueueStore: equality, $or, $gte/$lte, $set and upserts.

def _value_matches(actual, expected) -> bool:
    if isinstance(expected, dict) and any(k.startswith("$") for k in expected):
        for op, operand in expected.items():
            if actual is None:
                return False
            if op == "$gte" and not actual >= operand:
                return False
            if op == "$lte" and not actual <= operand:
                return False
        return True
    return actual == expected


def _matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        if key == "$or":
            if not any(_matches(doc, cond) for cond in expected):
                return False
        elif not _value_matches(doc.get(key), expected):
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)
        self._limit = 0

    def sort(self, key, direction=None):
        keys = key if isinstance(key, list) else [(key, 1 if direction is None else direction)]
        for field, d in reversed(keys):
            self._docs.sort(
                key=lambda doc: (doc.get(field) is not None, doc.get(field)),
                reverse=d < 0,
            )
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def __aiter__(self):
        docs = self._docs[: self._limit] if self._limit else self._docs
        for doc in docs:
            yield dict(doc)


class FakeCollection:
    def __init__(self):
        self._docs: dict = {}
        self.update_calls: list = []

    async def create_index(self, *_args, **_kwargs):
        return "idx"

    async def find_one(self, query):
        for doc in self._docs.values():
            if _matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, doc):
        from pymongo.errors import DuplicateKeyError

        doc = dict(doc)
        doc.setdefault("_id", ObjectId())
        if doc["_id"] in self._docs:
            raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
        self._docs[doc["_id"]] = doc
        result = MagicMock()
        result.inserted_id = doc["_id"]
        return result

    async def insert_many(self, docs):
        ids = [(await self.insert_one(d)).inserted_id for d in docs]
        result = MagicMock()
        result.inserted_ids = ids
        return result

    async def update_one(self, query, update, upsert=False):
        self.update_calls.append((query, update))
        for key, doc in self._docs.items():
            if _matches(doc, query):
                self._docs[key] = {**doc, **update.get("$set", {})}
                return
        if upsert:
            doc = {k: v for k, v in query.items() if not k.startswith("$")}
            doc.update(update.get("$setOnInsert", {}))
            doc.update(update.get("$set", {}))
            doc.setdefault("_id", ObjectId())
            self._docs[doc["_id"]] = doc

    async def find_one_and_update(self, query, update, return_document=False):
        for key, doc in self._docs.items():
            if _matches(doc, query):
                after = {**doc, **update.get("$set", {})}
                self._docs[key] = after
                return dict(after if return_document else doc)
        return None

    async def delete_one(self, query):
        for key, doc in list(self._docs.items()):
            if _matches(doc, query):
                del self._docs[key]
                return

    async def delete_many(self, query):
        doomed = [k for k, d in self._docs.items() if _matches(d, query)]
        for k in doomed:
            del self._docs[k]
        result = MagicMock()
        result.deleted_count = len(doomed)
        return result

    async def count_documents(self, query):
        return sum(1 for d in self._docs.values() if _matches(d, query))

    def find(self, query=None):
        return FakeCursor(d for d in self._docs.values() if _matches(d, query or {}))


class FakeDB:
    def __init__(self):
        self._cols = {}

    def __getitem__(self, name):
        if name not in self._cols:
            self._cols[name] = FakeCollection()
        return self._cols[name]


# ── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
async def mock_db():
    """
    Patch the MongoDB lifecycle for every test.

    - connect_to_mongo → no-op AsyncMock (startup doesn't attempt real connection)
    - close_mongo_connection → no-op AsyncMock
    - db_client.client / db_client.db → None
    """
    with (
        patch("app.core.database.connect_to_mongo", new_callable=AsyncMock),
        patch("app.core.database.close_mongo_connection", new_callable=AsyncMock),
    ):
        import app.core.database as db_module

        original_client = db_module.db_client.client
        original_db = db_module.db_client.db

        db_module.db_client.client = None
        db_module.db_client.db = None

        yield

        db_module.db_client.client = original_client
        db_module.db_client.db = original_db


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from app.core.rate_limit import limiter

    limiter.reset()
    yield


@pytest.fixture(autouse=True)
async def publisher(monkeypatch):
    """A fresh HotspotPublisher with a 50 ms debounce window for each test."""
    import app.services.hotspot_publisher as publisher_module

    fresh = publisher_module.HotspotPublisher(debounce_seconds=0.05)
    monkeypatch.setattr(publisher_module, "hotspot_publisher", fresh)
    yield fresh
    await fresh.close()


@pytest.fixture(autouse=True)
async def worker(monkeypatch):
    """A fresh ClassificationWorker whose tasks are drained at teardown."""
    import app.services.classification_worker as worker_module

    fresh = worker_module.ClassificationWorker()
    monkeypatch.setattr(worker_module, "classification_worker", fresh)
    yield fresh
    await fresh.drain()


@pytest.fixture()
def fake_db():
    return FakeDB()


@pytest.fixture()
async def client(mock_db):  # noqa: ARG001 — mock_db must run first
    """
    HTTPX async test client wired to the FastAPI app (database disconnected).

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from app.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def db_client_app(fake_db):
    """HTTPX client with get_db overridden to the in-memory FakeDB."""
    from app.core.database import get_db
    from app.main import app

    app.dependency_overrides[get_db] = lambda: fake_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

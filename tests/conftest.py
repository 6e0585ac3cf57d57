"""
Pytest Configuration and Fixtures

Unit tests run fully offline: repositories are patched, the vector store is
an in-memory fake and the embedding provider is mocked.

Live tests (``@pytest.mark.live``) need the running stack; session-scoped
fixtures ensure API readiness before they execute.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults: MUST be before any noteweave imports.
#
# 1. Load .env first so that Docker-matching credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "POSTGRES_USER": "noteweave",
    "POSTGRES_PASSWORD": "noteweave_password",
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "noteweave_db",
    "OPENAI_API_KEY": "mock",
    "EMBEDDING_PROVIDER": "mock",
    "EMBEDDING_DISPATCH": "background",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import math  # noqa: E402
import time  # noqa: E402
import uuid  # noqa: E402
from collections.abc import Generator, Sequence  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from noteweave.models import Note, NoteType  # noqa: E402
from noteweave.services.vector_store import (  # noqa: E402
    VectorFilter,
    VectorMatch,
    VectorRecord,
    VectorStore,
)

BASE_URL = "http://localhost:8000"
OWNER_A = "owner-alice"
OWNER_B = "owner-bob"


# ---------------------------------------------------------------------------
# Offline fakes
# ---------------------------------------------------------------------------


class FakeSession:
    """Stand-in for AsyncSession when every repository call is patched."""

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


def fake_session_factory() -> FakeSession:
    return FakeSession()


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore(VectorStore):
    """
    Dict-backed vector store.

    Only the owner filter is evaluated store-side, which exercises the
    searcher's post-filter path for note_type/tags.
    """

    supports_metadata_filters = False

    def __init__(self) -> None:
        self.records: dict[uuid.UUID, VectorRecord] = {}
        self.queries: list[tuple[int, VectorFilter]] = []

    async def upsert(self, id: uuid.UUID, vector: list[float], metadata: dict[str, Any]) -> None:
        self.records[id] = VectorRecord(id=id, vector=list(vector), metadata=dict(metadata))

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        for record in records:
            await self.upsert(record.id, record.vector, record.metadata)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: VectorFilter,
        include_metadata: bool = True,
    ) -> list[VectorMatch]:
        self.queries.append((top_k, filter))
        scored = [
            VectorMatch(
                id=r.id,
                score=_cosine(vector, r.vector),
                metadata=r.metadata if include_metadata else None,
            )
            for r in self.records.values()
            if r.metadata.get("owner_id") == filter.owner_id
        ]
        scored.sort(key=lambda m: m.score, reverse=True)
        return scored[:top_k]

    async def fetch(self, ids: Sequence[uuid.UUID]) -> list[VectorRecord]:
        return [self.records[i] for i in ids if i in self.records]

    async def delete(self, ids: Sequence[uuid.UUID]) -> None:
        for i in ids:
            self.records.pop(i, None)


def make_note(
    owner_id: str = OWNER_A,
    title: str = "A note",
    content: str = "Some **markdown** content",
    note_type: NoteType = NoteType.NOTE,
    metadata: dict[str, Any] | None = None,
    updated_at: datetime | None = None,
    **fields: Any,
) -> Note:
    """Transient Note instance (never attached to a session)."""
    now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    return Note(
        id=fields.pop("id", uuid.uuid4()),
        owner_id=owner_id,
        title=title,
        content=content,
        content_plain=fields.pop("content_plain", content.replace("**", "")),
        note_type=note_type,
        note_metadata=metadata if metadata is not None else {"embedding_status": "pending"},
        created_at=fields.pop("created_at", now - timedelta(days=1)),
        updated_at=updated_at or now,
        **fields,
    )


class FakeProvider:
    """Embedding provider double with a scripted ``embed``."""

    def __init__(self, vector: list[float] | None = None) -> None:
        self.dimension = 3
        self.embed = AsyncMock(return_value=vector or [1.0, 0.0, 0.0])
        self.embed_batch = AsyncMock()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def note_factory():
    """Factory for transient Note instances."""
    return make_note


@pytest.fixture
def session_factory():
    """Session factory whose sessions do nothing (repositories are patched)."""
    return fake_session_factory


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


# ---------------------------------------------------------------------------
# Live stack
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready or timeout expires.

    Polls /health endpoint with 1s intervals for up to 30s.
    Fails the test session if API is unreachable (Docker likely not running).
    """
    url = f"{BASE_URL}/health"
    timeout = 30
    start = time.time()

    print("\n[Test] Waiting for API...")
    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                print("API Ready")
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.fail("API unreachable. Docker is likely down.")


def _live_client(owner_id: str) -> httpx.Client:
    return httpx.Client(
        base_url=f"{BASE_URL}/api/v1",
        headers={"X-Owner-Id": owner_id},
        timeout=10.0,
    )


@pytest.fixture(scope="session")
def api_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """
    HTTP client for the live API, authenticated as owner A.

    Yields:
        httpx.Client: Session-scoped client, automatically closed after tests.
    """
    with _live_client(OWNER_A) as client:
        yield client


@pytest.fixture(scope="session")
def other_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """HTTP client for the live API, authenticated as owner B."""
    with _live_client(OWNER_B) as client:
        yield client

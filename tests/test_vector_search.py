"""
Vector Search Unit Tests

Owner isolation and metadata filtering of nearest-neighbour queries, over
the in-memory store (post-filter path) and the pgvector store (pushdown).
"""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from noteweave.core.errors import OwnerRequiredError
from noteweave.core.isolation import OwnerScope
from noteweave.services.vector_search import FILTER_OVERFETCH, VectorSearcher
from noteweave.services.vector_store import (
    PgVectorStore,
    VectorFilter,
    VectorMatch,
    VectorRecord,
)


def _meta(owner: str, note_type: str = "note", tags: list[str] | None = None) -> dict:
    return {"owner_id": owner, "note_type": note_type, "tags": tags or []}


@pytest.fixture
def populated(vector_store):
    ids = {name: uuid.uuid4() for name in ("a1", "a2", "a3", "b1")}
    for name, vector, meta in [
        ("a1", [1.0, 0.0, 0.0], _meta("alice", tags=["work"])),
        ("a2", [0.9, 0.1, 0.0], _meta("alice", "journal")),
        ("a3", [0.0, 1.0, 0.0], _meta("alice", tags=["home"])),
        ("b1", [1.0, 0.0, 0.0], _meta("bob", tags=["work"])),
    ]:
        vector_store.records[ids[name]] = VectorRecord(id=ids[name], vector=vector, metadata=meta)
    return ids


class TestVectorFilter:
    def test_requires_owner(self) -> None:
        with pytest.raises(OwnerRequiredError):
            VectorFilter(owner_id="")

    def test_matches(self) -> None:
        flt = VectorFilter(owner_id="alice", note_type="note", tags=("work", "x"))

        assert flt.matches(_meta("alice", tags=["work"]))
        assert not flt.matches(_meta("bob", tags=["work"]))
        assert not flt.matches(_meta("alice", "journal", ["work"]))
        assert not flt.matches(_meta("alice", tags=["home"]))
        assert not flt.matches(None)


class TestVectorSearcher:
    @pytest.mark.asyncio
    async def test_results_never_cross_owners(self, vector_store, populated) -> None:
        searcher = VectorSearcher(vector_store)

        matches = await searcher.search([1.0, 0.0, 0.0], OwnerScope("alice"), top_k=10)

        assert populated["b1"] not in {m.id for m in matches}
        assert [m.id for m in matches][:2] == [populated["a1"], populated["a2"]]

    @pytest.mark.asyncio
    async def test_post_filter_with_overfetch(self, vector_store, populated) -> None:
        searcher = VectorSearcher(vector_store)

        matches = await searcher.search(
            [1.0, 0.0, 0.0], OwnerScope("alice"), top_k=2, tags=["home"]
        )

        assert [m.id for m in matches] == [populated["a3"]]
        top_k, flt = vector_store.queries[-1]
        assert top_k == 2 * FILTER_OVERFETCH
        assert flt.owner_id == "alice"
        assert flt.tags is None

    @pytest.mark.asyncio
    async def test_note_type_filter(self, vector_store, populated) -> None:
        searcher = VectorSearcher(vector_store)

        matches = await searcher.search(
            [1.0, 0.0, 0.0], OwnerScope("alice"), top_k=5, note_type="journal"
        )

        assert [m.id for m in matches] == [populated["a2"]]

    @pytest.mark.asyncio
    async def test_zero_top_k(self, vector_store, populated) -> None:
        searcher = VectorSearcher(vector_store)

        assert await searcher.search([1.0, 0.0, 0.0], OwnerScope("alice"), top_k=0) == []
        assert vector_store.queries == []

    @pytest.mark.asyncio
    async def test_pushdown_when_store_filters(self) -> None:
        store = MagicMock()
        store.supports_metadata_filters = True
        good, stale = uuid.uuid4(), uuid.uuid4()
        store.query = AsyncMock(
            return_value=[
                VectorMatch(id=good, score=0.9, metadata=_meta("alice", tags=["work"])),
                VectorMatch(id=stale, score=0.8, metadata=_meta("alice", tags=["old"])),
            ]
        )

        matches = await VectorSearcher(store).search(
            [0.1], OwnerScope("alice"), top_k=3, tags=["work"]
        )

        assert [m.id for m in matches] == [good]
        _, top_k, flt = store.query.call_args.args
        assert top_k == 3
        assert flt == VectorFilter(owner_id="alice", tags=("work",))


class TestPgVectorStore:
    @staticmethod
    def _factory(rows=None):
        result = MagicMock()
        result.all.return_value = rows or []
        session = MagicMock()
        session.execute = AsyncMock(return_value=result)
        session.commit = AsyncMock()
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=session)
        context.__aexit__ = AsyncMock(return_value=False)
        return MagicMock(return_value=context), session

    @pytest.mark.asyncio
    async def test_query_filters_owner_and_converts_distance(self) -> None:
        note_id = uuid.uuid4()
        factory, session = self._factory(rows=[(note_id, _meta("alice"), 0.25)])
        store = PgVectorStore(factory)

        matches = await store.query(
            [0.1, 0.2, 0.3],
            5,
            VectorFilter(owner_id="alice", note_type="note", tags=("work",)),
        )

        assert matches == [VectorMatch(id=note_id, score=0.75, metadata=_meta("alice"))]
        stmt = session.execute.call_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "note_embeddings.owner_id = " in sql
        assert "<=>" in sql
        assert "?|" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_query_without_metadata(self) -> None:
        factory, _ = self._factory(rows=[(uuid.uuid4(), _meta("alice"), 0.0)])

        matches = await PgVectorStore(factory).query(
            [0.1], 1, VectorFilter(owner_id="alice"), include_metadata=False
        )

        assert matches[0].metadata is None
        assert matches[0].score == 1.0

    @pytest.mark.asyncio
    async def test_upsert_requires_owner_metadata(self) -> None:
        factory, session = self._factory()

        with pytest.raises(OwnerRequiredError):
            await PgVectorStore(factory).upsert(uuid.uuid4(), [0.1], {"title": "x"})
        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_is_on_conflict_update(self) -> None:
        factory, session = self._factory()

        await PgVectorStore(factory).upsert(uuid.uuid4(), [0.1], _meta("alice"))

        stmt = session.execute.call_args.args[0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (note_id) DO UPDATE" in sql
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_batches_are_noops(self) -> None:
        factory, session = self._factory()
        store = PgVectorStore(factory)

        await store.upsert_batch([])
        await store.delete([])
        assert await store.fetch([]) == []
        session.execute.assert_not_called()

"""
Search Orchestrator Unit Tests

Keyword, semantic and hybrid modes with a stubbed vector searcher and
patched repositories. Covers fusion order, graceful degradation,
pagination and owner scoping.
"""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from noteweave.core.errors import ProviderError, TransientProviderError
from noteweave.core.isolation import OwnerScope
from noteweave.models import NoteType
from noteweave.repositories import lexical_search_repository, note_repository
from noteweave.repositories.search import LexicalHit, LexicalQuery
from noteweave.schemas.search import SearchParams
from noteweave.services.search import SearchOrchestrator
from noteweave.services.vector_store import VectorMatch

OWNER = "owner-alice"
SCOPE = OwnerScope(OWNER)


@pytest.fixture
def notes(note_factory):
    base = note_factory().updated_at
    return {
        name: note_factory(owner_id=OWNER, title=name, updated_at=base + timedelta(minutes=i))
        for i, name in enumerate(("N1", "N2", "N3"))
    }


@pytest.fixture
def searcher(notes):
    stub = MagicMock()
    stub.search = AsyncMock(
        return_value=[
            VectorMatch(id=notes[name].id, score=0.9, metadata=_echo(notes[name]))
            for name in ("N2", "N3")
        ]
    )
    return stub


@pytest.fixture
def repos(notes):
    by_id = {n.id: n for n in notes.values()}
    with (
        patch.object(lexical_search_repository, "search", new_callable=AsyncMock) as search,
        patch.object(lexical_search_repository, "count", new_callable=AsyncMock) as count,
        patch.object(lexical_search_repository, "has_terms", new_callable=AsyncMock) as has_terms,
        patch.object(note_repository, "get_many", new_callable=AsyncMock) as get_many,
    ):
        search.return_value = [
            LexicalHit(note=notes["N1"], rank=0.8),
            LexicalHit(note=notes["N2"], rank=0.2),
        ]
        count.return_value = 2
        has_terms.return_value = True
        get_many.side_effect = lambda session, scope, ids: [by_id[i] for i in ids if i in by_id]
        yield SimpleNamespace(
            search=search, count=count, get_many=get_many, has_terms=has_terms
        )


@pytest.fixture
def orchestrator(searcher, provider) -> SearchOrchestrator:
    return SearchOrchestrator(searcher, provider, overfetch_factor=2)


def _echo(note) -> dict:
    return {"owner_id": note.owner_id, "updated_at": note.updated_at.isoformat()}


def _titles(response) -> list[str]:
    return [r.title for r in response.results]


class TestHybrid:
    @pytest.mark.asyncio
    async def test_fused_order(self, orchestrator, repos) -> None:
        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="rust", semantic_weight=0.6)
        )

        assert _titles(response) == ["N2", "N3", "N1"]
        assert [r.score for r in response.results] == pytest.approx([0.62, 0.54, 0.32])
        n2 = response.results[0]
        assert n2.lexical_rank == 0.2
        assert n2.semantic_score == 0.9
        assert response.count == 3
        assert response.degraded is False
        assert response.semantic_weight == 0.6

    @pytest.mark.asyncio
    async def test_degrades_to_keyword_when_provider_fails(
        self, orchestrator, repos, provider, searcher
    ) -> None:
        provider.embed.side_effect = TransientProviderError("provider down")

        response = await orchestrator.search(None, SCOPE, SearchParams(query="rust"))

        assert response.degraded is True
        assert _titles(response) == ["N1", "N2"]
        assert response.results[0].score == pytest.approx(0.8)
        assert all(r.semantic_score is None for r in response.results)
        searcher.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_degrades_when_vector_store_fails(self, orchestrator, repos, searcher) -> None:
        searcher.search.side_effect = ConnectionError("vector store unreachable")

        response = await orchestrator.search(None, SCOPE, SearchParams(query="rust"))

        assert response.degraded is True
        assert _titles(response) == ["N1", "N2"]

    @pytest.mark.asyncio
    async def test_lexical_failure_propagates(self, orchestrator, repos) -> None:
        repos.search.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await orchestrator.search(None, SCOPE, SearchParams(query="rust"))

    @pytest.mark.asyncio
    async def test_owner_scope_and_filters_forwarded(
        self, orchestrator, repos, searcher
    ) -> None:
        await orchestrator.search(
            None,
            SCOPE,
            SearchParams(
                query="rust",
                note_type=NoteType.JOURNAL,
                tags=["work"],
                min_mood=2,
                max_mood=8,
            ),
        )

        _, scope, lexical = repos.search.call_args.args
        assert scope.owner_id == OWNER
        assert lexical.note_type == NoteType.JOURNAL
        assert (lexical.min_mood, lexical.max_mood) == (2, 8)
        kwargs = searcher.search.call_args.kwargs
        assert searcher.search.call_args.args[1].owner_id == OWNER
        assert kwargs["note_type"] == "journal"
        assert kwargs["tags"] == ["work"]

    @pytest.mark.asyncio
    async def test_page_hydrated_in_fused_order(self, orchestrator, repos, searcher) -> None:
        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="rust", limit=1, offset=1)
        )

        assert _titles(response) == ["N3"]
        assert repos.search.call_args.args[2].limit == 4
        assert searcher.search.call_args.kwargs["top_k"] == 4
        assert len(repos.get_many.call_args.args[2]) == 1

    @pytest.mark.asyncio
    async def test_deleted_notes_skipped_on_hydration(self, orchestrator, repos, notes) -> None:
        repos.get_many.side_effect = None
        repos.get_many.return_value = [notes["N1"]]

        response = await orchestrator.search(None, SCOPE, SearchParams(query="rust"))

        assert _titles(response) == ["N1"]

    @pytest.mark.asyncio
    async def test_include_count(self, orchestrator, repos) -> None:
        repos.count.return_value = 7

        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="rust", include_count=True)
        )

        assert response.total_count == 7

    @pytest.mark.asyncio
    async def test_count_skipped_by_default(self, orchestrator, repos) -> None:
        response = await orchestrator.search(None, SCOPE, SearchParams(query="rust"))

        assert response.total_count is None
        repos.count.assert_not_called()


class TestSingleModes:
    @pytest.mark.asyncio
    async def test_keyword_mode_never_embeds(
        self, orchestrator, repos, provider, searcher
    ) -> None:
        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="rust", mode="keyword")
        )

        assert _titles(response) == ["N1", "N2"]
        assert response.semantic_weight is None
        provider.embed.assert_not_called()
        searcher.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_semantic_mode_orders_by_similarity_then_recency(
        self, orchestrator, repos
    ) -> None:
        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="rust", mode="semantic")
        )

        # Equal similarity: the more recently updated N3 comes first
        assert _titles(response) == ["N3", "N2"]
        repos.search.assert_not_called()

    @pytest.mark.asyncio
    async def test_semantic_mode_surfaces_provider_errors(
        self, orchestrator, repos, provider
    ) -> None:
        provider.embed.side_effect = ProviderError("bad request")

        with pytest.raises(ProviderError):
            await orchestrator.search(None, SCOPE, SearchParams(query="rust", mode="semantic"))

    @pytest.mark.asyncio
    async def test_query_without_terms_returns_empty(
        self, orchestrator, repos, provider
    ) -> None:
        response = await orchestrator.search(None, SCOPE, SearchParams(query="<>[]"))

        assert response.results == []
        assert response.count == 0
        repos.search.assert_not_called()
        provider.embed.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["hybrid", "semantic", "keyword"])
    async def test_stopword_only_query_returns_empty(
        self, orchestrator, repos, provider, searcher, mode
    ) -> None:
        repos.has_terms.return_value = False

        response = await orchestrator.search(
            None, SCOPE, SearchParams(query="the and of", mode=mode)
        )

        assert response.results == []
        assert response.count == 0
        repos.has_terms.assert_awaited_once_with(None, "the and of")
        provider.embed.assert_not_called()
        searcher.search.assert_not_called()
        repos.search.assert_not_called()


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_has_more(self, orchestrator, repos) -> None:
        repos.count.return_value = 5

        response = await orchestrator.keyword_search(
            None, SCOPE, LexicalQuery(query="rust", limit=2), include_count=True
        )

        assert _titles(response) == ["N1", "N2"]
        assert response.count == 2
        assert response.total_count == 5
        assert response.has_more is True

    @pytest.mark.asyncio
    async def test_last_page(self, orchestrator, repos) -> None:
        response = await orchestrator.keyword_search(
            None, SCOPE, LexicalQuery(query="rust", limit=2, offset=0), include_count=True
        )

        assert response.has_more is False

    @pytest.mark.asyncio
    async def test_without_count(self, orchestrator, repos) -> None:
        response = await orchestrator.keyword_search(
            None, SCOPE, LexicalQuery(query="rust")
        )

        assert response.total_count is None
        assert response.has_more is None

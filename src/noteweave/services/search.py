"""
Search Service

Query orchestration for hybrid retrieval:

    keyword   full-text rank only
    semantic  vector similarity only
    hybrid    both, fused with a configurable semantic weight (default)

Each searcher is over-fetched so fusion has candidates to re-order, the
fused list is paginated, and only the page is hydrated from the database
(one owner-scoped batch). Hybrid search degrades to keyword-only results
when the embedding provider or the vector store fails.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.core.config import settings
from noteweave.core.isolation import OwnerScope
from noteweave.models import Note
from noteweave.repositories import lexical_search_repository, note_repository
from noteweave.repositories.search import LexicalHit, LexicalQuery, sanitize_search_query
from noteweave.schemas.search import (
    KeywordSearchResponse,
    SearchParams,
    SearchResponse,
    SearchResultItem,
)
from noteweave.services.ai import EmbeddingProvider, get_embedding_provider
from noteweave.services.fusion import FusedScore, fuse_results, rank_fused
from noteweave.services.vector_search import VectorSearcher

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Runs keyword, semantic and hybrid searches for one owner at a time."""

    def __init__(
        self,
        searcher: VectorSearcher,
        provider: EmbeddingProvider | None = None,
        overfetch_factor: int | None = None,
    ) -> None:
        self.searcher = searcher
        self._provider = provider
        self.overfetch_factor = overfetch_factor or settings.SEARCH_OVERFETCH_FACTOR

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = get_embedding_provider()
        return self._provider

    # ------------------------------------------------------------------
    # Candidate retrieval
    # ------------------------------------------------------------------

    def _lexical_query(self, terms: str, params: SearchParams, fetch_k: int) -> LexicalQuery:
        return LexicalQuery(
            query=terms,
            limit=fetch_k,
            offset=0,
            note_type=params.note_type,
            min_mood=params.min_mood,
            max_mood=params.max_mood,
        )

    async def _semantic(
        self,
        vector: list[float],
        scope: OwnerScope,
        params: SearchParams,
        fetch_k: int,
    ) -> tuple[dict[UUID, float], dict[UUID, datetime]]:
        """Similarity per note, plus the update time echoed in vector metadata."""
        matches = await self.searcher.search(
            vector,
            scope,
            top_k=fetch_k,
            note_type=params.note_type.value if params.note_type else None,
            tags=params.tags,
        )
        scores = {m.id: m.score for m in matches}
        updated: dict[UUID, datetime] = {}
        for m in matches:
            raw = (m.metadata or {}).get("updated_at")
            if raw:
                updated[m.id] = datetime.fromisoformat(raw)
        return scores, updated

    @staticmethod
    def _lexical_scores(hits: list[LexicalHit]) -> dict[UUID, float]:
        return {hit.note.id: hit.rank for hit in hits}

    async def _hybrid(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        terms: str,
        params: SearchParams,
        fetch_k: int,
    ) -> tuple[dict[UUID, FusedScore], bool]:
        lexical_task = lexical_search_repository.search(
            session, scope, self._lexical_query(terms, params, fetch_k)
        )
        embed_task = self.provider.embed(terms)
        hits, vector = await asyncio.gather(lexical_task, embed_task, return_exceptions=True)

        if isinstance(hits, BaseException):
            raise hits
        updated = {hit.note.id: hit.note.updated_at for hit in hits}

        try:
            if isinstance(vector, BaseException):
                raise vector
            semantic, semantic_updated = await self._semantic(vector, scope, params, fetch_k)
        except Exception as e:
            logger.warning("Semantic search unavailable, falling back to keyword: %s", e)
            fused = fuse_results(self._lexical_scores(hits), {}, 0.0, updated)
            return fused, True

        # Lexical hits carry the authoritative row timestamp
        fused = fuse_results(
            self._lexical_scores(hits),
            semantic,
            params.semantic_weight,
            {**semantic_updated, **updated},
        )
        return fused, False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        params: SearchParams,
    ) -> SearchResponse:
        """
        Ranked, paginated search over the owner's notes.

        Args:
            session: Request-scoped database session.
            scope: Owner scope applied to every searcher and to hydration.
            params: Validated search parameters.

        Returns:
            SearchResponse. Empty (not an error) when the query has no
            searchable terms.

        Raises:
            ProviderError: In semantic mode, when the query cannot be embedded.
        """
        terms = sanitize_search_query(params.query)
        response = SearchResponse(
            offset=params.offset,
            limit=params.limit,
            query=params.query,
            mode=params.mode,
            semantic_weight=params.semantic_weight if params.mode == "hybrid" else None,
        )
        if not terms or not await lexical_search_repository.has_terms(session, terms):
            # Stopword-only queries would otherwise return arbitrary vector hits
            return response

        fetch_k = (params.offset + params.limit) * self.overfetch_factor
        degraded = False

        if params.mode == "keyword":
            hits = await lexical_search_repository.search(
                session, scope, self._lexical_query(terms, params, fetch_k)
            )
            fused = {
                hit.note.id: FusedScore(
                    combined_score=hit.rank,
                    lexical_rank=hit.rank,
                    updated_at=hit.note.updated_at,
                )
                for hit in hits
            }
        elif params.mode == "semantic":
            vector = await self.provider.embed(terms)
            semantic, updated = await self._semantic(vector, scope, params, fetch_k)
            fused = {
                note_id: FusedScore(
                    combined_score=score,
                    semantic_score=score,
                    updated_at=updated.get(note_id),
                )
                for note_id, score in semantic.items()
            }
        else:
            fused, degraded = await self._hybrid(session, scope, terms, params, fetch_k)

        ranked = rank_fused(fused)
        page = ranked[params.offset : params.offset + params.limit]
        response.results = await self._hydrate(session, scope, page)
        response.count = len(fused)
        response.degraded = degraded

        if params.include_count:
            response.total_count = await lexical_search_repository.count(
                session, scope, self._lexical_query(terms, params, fetch_k)
            )

        logger.info(
            "Search mode=%s results=%d candidates=%d degraded=%s",
            params.mode,
            len(response.results),
            response.count,
            degraded,
        )
        return response

    async def keyword_search(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        params: LexicalQuery,
        include_count: bool = False,
    ) -> KeywordSearchResponse:
        """Plain full-text search with database-side pagination."""
        hits = await lexical_search_repository.search(session, scope, params)
        results = [
            self._item(hit.note, FusedScore(combined_score=hit.rank, lexical_rank=hit.rank))
            for hit in hits
        ]
        total_count = None
        has_more = None
        if include_count:
            total_count = await lexical_search_repository.count(session, scope, params)
            has_more = params.offset + len(results) < total_count

        return KeywordSearchResponse(
            results=results,
            query=params.query,
            count=len(results),
            total_count=total_count,
            limit=params.limit,
            offset=params.offset,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    @staticmethod
    def _item(note: Note, score: FusedScore) -> SearchResultItem:
        return SearchResultItem(
            id=note.id,
            title=note.title,
            content=note.content,
            content_plain=note.content_plain,
            note_type=note.note_type,
            source_url=note.source_url,
            mood_score=note.mood_score,
            created_at=note.created_at,
            updated_at=note.updated_at,
            score=score.combined_score,
            lexical_rank=score.lexical_rank,
            semantic_score=score.semantic_score,
        )

    async def _hydrate(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        page: list[tuple[UUID, FusedScore]],
    ) -> list[SearchResultItem]:
        if not page:
            return []
        notes = {
            n.id: n for n in await note_repository.get_many(session, scope, [i for i, _ in page])
        }
        # Keep fused order; skip ids deleted since they were ranked
        return [self._item(notes[i], score) for i, score in page if i in notes]

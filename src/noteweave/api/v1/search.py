"""
Search API Router

Hybrid (keyword + semantic) search and plain keyword search over the
caller's notes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.api.deps import get_owner_scope, get_search_orchestrator, parse_params
from noteweave.core.config import settings
from noteweave.core.database import get_db
from noteweave.core.errors import ValidationError
from noteweave.core.isolation import OwnerScope
from noteweave.models import NoteType
from noteweave.repositories.search import LexicalQuery
from noteweave.schemas.search import (
    KeywordSearchResponse,
    SearchMode,
    SearchParams,
    SearchResponse,
)
from noteweave.services.search import SearchOrchestrator

router = APIRouter()

KEYWORD_MAX_LIMIT = 100


def _split_tags(tags: str | None) -> list[str] | None:
    if not tags:
        return None
    names = [t.strip() for t in tags.split(",") if t.strip()]
    return names or None


@router.get("", response_model=SearchResponse, response_model_exclude_none=True)
async def search_notes(
    q: str,
    limit: int = 20,
    offset: int = 0,
    mode: SearchMode = "hybrid",
    weight: float = settings.DEFAULT_SEMANTIC_WEIGHT,
    note_type: NoteType | None = None,
    tags: str | None = None,
    min_mood: int | None = None,
    max_mood: int | None = None,
    include_count: bool = False,
    scope: OwnerScope = Depends(get_owner_scope),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    """
    Search notes.

    Modes:
        - hybrid (default): keyword rank and semantic similarity fused with
          ``weight`` on the semantic side. Falls back to keyword-only
          results (``degraded=true``) if the embedding service is down.
        - keyword: full-text rank only.
        - semantic: vector similarity only (502 if embeddings fail).

    ``tags`` is a comma-separated list; it filters the semantic side.
    """
    params = parse_params(
        SearchParams,
        query=q,
        limit=limit,
        offset=offset,
        mode=mode,
        semantic_weight=weight,
        note_type=note_type,
        tags=_split_tags(tags),
        min_mood=min_mood,
        max_mood=max_mood,
        include_count=include_count,
    )
    return await orchestrator.search(db, scope, params)


@router.get("/keyword", response_model=KeywordSearchResponse)
async def keyword_search(
    q: str,
    limit: int = 20,
    offset: int = 0,
    note_type: NoteType | None = None,
    min_mood: int | None = None,
    max_mood: int | None = None,
    include_count: bool = False,
    scope: OwnerScope = Depends(get_owner_scope),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
    db: AsyncSession = Depends(get_db),
):
    """Full-text search only, paginated in the database."""
    if not q.strip():
        raise ValidationError("Query is required")
    if not 1 <= limit <= KEYWORD_MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {KEYWORD_MAX_LIMIT}")
    if offset < 0:
        raise ValidationError("offset must be non-negative")
    if min_mood is not None and max_mood is not None and min_mood > max_mood:
        raise ValidationError("min_mood cannot be greater than max_mood")

    params = LexicalQuery(
        query=q,
        limit=limit,
        offset=offset,
        note_type=note_type,
        min_mood=min_mood,
        max_mood=max_mood,
    )
    return await orchestrator.keyword_search(db, scope, params, include_count=include_count)

"""
API Dependencies

FastAPI dependency providers: owner scope from the auth gateway header,
job dispatcher, and the retrieval services (process-wide singletons built
lazily on first request).
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from fastapi import BackgroundTasks, Header
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from noteweave.core.database import get_session_factory
from noteweave.core.errors import ValidationError
from noteweave.core.isolation import OwnerScope, require_scope
from noteweave.services.embeddings import EmbeddingManager, get_embedding_manager
from noteweave.services.jobs import JobDispatcher, build_dispatcher
from noteweave.services.related import RelatedNotesEngine
from noteweave.services.search import SearchOrchestrator
from noteweave.services.vector_search import VectorSearcher
from noteweave.services.vector_store import PgVectorStore

OWNER_HEADER = "X-Owner-Id"

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_params(model: type[ModelT], **values: Any) -> ModelT:
    """Validate query parameters into ``model``; failures become 400s."""
    try:
        return model(**values)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid parameters",
            details=e.errors(include_url=False, include_context=False),
        ) from e


def get_owner_scope(
    x_owner_id: str | None = Header(default=None, alias=OWNER_HEADER),
) -> OwnerScope:
    """Owner scope for the request. Missing header -> OwnerRequiredError (401)."""
    return require_scope(x_owner_id)


def get_dispatcher(background_tasks: BackgroundTasks) -> JobDispatcher:
    return build_dispatcher(background_tasks)


@lru_cache(maxsize=1)
def get_vector_searcher() -> VectorSearcher:
    return VectorSearcher(PgVectorStore(get_session_factory()))


def get_search_orchestrator() -> SearchOrchestrator:
    return SearchOrchestrator(get_vector_searcher())


def get_related_engine() -> RelatedNotesEngine:
    return RelatedNotesEngine(get_vector_searcher())


def get_manager() -> EmbeddingManager:
    return get_embedding_manager()

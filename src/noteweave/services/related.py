"""
Related Notes Service

Suggests semantically similar notes, either for a saved note (using its
stored vector) or for draft content while editing (embedded on the fly,
never persisted).

Results are hydrated from the relational store in one owner-scoped batch,
annotated with a display preview and an ``is_linked`` flag, and ordered by
similarity percentage.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.core.config import settings
from noteweave.core.errors import ConsistencyError, NotFoundError
from noteweave.core.isolation import OwnerScope
from noteweave.repositories import link_repository, note_repository
from noteweave.schemas.related import RelatedNote, RelatedNotesResponse
from noteweave.services.ai import EmbeddingProvider, get_embedding_provider
from noteweave.services.markdown import build_preview, strip_markdown
from noteweave.services.vector_search import VectorSearcher
from noteweave.services.vector_store import VectorMatch

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 10


def clamp_limit(limit: int) -> int:
    return max(MIN_LIMIT, min(limit, MAX_LIMIT))


class RelatedNotesEngine:
    """Nearest-neighbour suggestions scoped to one owner."""

    def __init__(
        self,
        searcher: VectorSearcher,
        provider: EmbeddingProvider | None = None,
        min_content_length: int | None = None,
        preview_length: int | None = None,
    ) -> None:
        self.searcher = searcher
        self._provider = provider
        self.min_content_length = min_content_length or settings.RELATED_MIN_CONTENT_LENGTH
        self.preview_length = preview_length or settings.RELATED_PREVIEW_LENGTH

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = get_embedding_provider()
        return self._provider

    async def _note_vector(self, note_id: UUID) -> list[float]:
        records = await self.searcher.store.fetch([note_id])
        if not records:
            raise ConsistencyError(f"No vector stored for note {note_id}")
        return records[0].vector

    async def for_note(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        limit: int = 5,
    ) -> RelatedNotesResponse:
        """
        Notes similar to a saved note.

        Raises:
            NotFoundError: If the note does not exist for this owner.
        """
        limit = clamp_limit(limit)
        note = await note_repository.get_by_id(session, scope, note_id)
        if note is None:
            raise NotFoundError("Note not found")

        try:
            vector = await self._note_vector(note_id)
        except ConsistencyError:
            logger.debug("Note %s has no embedding yet", note_id)
            return RelatedNotesResponse(related=[], has_embedding=False)

        matches = await self.searcher.search(vector, scope, top_k=limit + 1)
        neighbours = [m for m in matches if m.id != note_id][:limit]
        related = await self._annotate(session, scope, note_id, neighbours)
        return RelatedNotesResponse(related=related, has_embedding=True)

    async def for_draft(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        content: str,
        exclude_note_id: UUID | None = None,
        limit: int = 5,
    ) -> RelatedNotesResponse:
        """
        Notes similar to unsaved draft content.

        Drafts too short to embed meaningfully return ``has_embedding=False``
        without calling the embedding provider.
        """
        limit = clamp_limit(limit)
        plain = strip_markdown(content or "")
        if len(plain) < self.min_content_length:
            return RelatedNotesResponse(related=[], has_embedding=False)

        vector = await self.provider.embed(plain)
        matches = await self.searcher.search(vector, scope, top_k=limit + 1)
        neighbours = [m for m in matches if m.id != exclude_note_id][:limit]
        related = await self._annotate(session, scope, exclude_note_id, neighbours)
        return RelatedNotesResponse(related=related, has_embedding=True)

    async def _annotate(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID | None,
        matches: Sequence[VectorMatch],
    ) -> list[RelatedNote]:
        if not matches:
            return []

        ids = [m.id for m in matches]
        notes = {n.id: n for n in await note_repository.get_many(session, scope, ids)}
        linked = (
            await link_repository.linked_ids(session, scope, note_id, ids)
            if note_id is not None
            else set()
        )

        related: list[RelatedNote] = []
        for match in matches:
            note = notes.get(match.id)
            if note is None:
                # Vector outlived its note (deletion not yet propagated)
                continue
            related.append(
                RelatedNote(
                    id=note.id,
                    title=note.title,
                    preview=build_preview(note.content, self.preview_length),
                    note_type=note.note_type,
                    similarity=round(match.score * 100),
                    created_at=note.created_at,
                    updated_at=note.updated_at,
                    is_linked=note.id in linked,
                )
            )

        related.sort(key=lambda r: r.similarity, reverse=True)
        return related

"""
Note Service

Note CRUD with the derived-field and embedding-status bookkeeping that the
retrieval core relies on:

    - content_plain is always strip_markdown(content)
    - word_count is recomputed whenever content changes
    - a change to embedded text resets embedding_status to pending and
      dispatches a job; writes never wait for the embedding
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.core.errors import ConflictError, NotFoundError
from noteweave.core.isolation import OwnerScope
from noteweave.models import EmbeddingStatus, Note
from noteweave.repositories import note_repository
from noteweave.schemas.embeddings import EmbeddingJob
from noteweave.schemas.notes import NoteCreate, NoteListParams, NoteMetadata, NoteUpdate
from noteweave.services.jobs import JobDispatcher
from noteweave.services.markdown import count_words, strip_markdown

logger = logging.getLogger(__name__)

# Fields that end up in the embedded text or the vector metadata
EMBEDDED_FIELDS = frozenset({"title", "content", "note_type"})


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class NoteService:
    """Owner-scoped note operations."""

    async def get(self, session: AsyncSession, scope: OwnerScope, note_id: UUID) -> Note:
        note = await note_repository.get_by_id(session, scope, note_id)
        if note is None:
            raise NotFoundError("Note not found")
        return note

    async def list(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        params: NoteListParams,
    ) -> tuple[Sequence[Note], int]:
        return await note_repository.list_notes(
            session,
            scope,
            limit=params.limit,
            offset=params.offset,
            note_type=params.note_type,
            min_mood=params.min_mood,
            max_mood=params.max_mood,
        )

    async def create(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        data: NoteCreate,
        dispatcher: JobDispatcher,
    ) -> Note:
        """
        Create a note and schedule its embedding.

        The note is immediately readable and keyword-searchable; it joins
        semantic search once the background job completes.
        """
        values = data.model_dump(exclude={"metadata"})
        content_plain = strip_markdown(data.content)
        meta = NoteMetadata(
            embedding_status=EmbeddingStatus.PENDING,
            word_count=count_words(content_plain),
            extra=data.metadata or {},
        )
        values.update(content_plain=content_plain, note_metadata=meta.to_column())

        note = await note_repository.create(session, scope, values)
        logger.info("Note %s created", note.id)

        await dispatcher.dispatch(
            EmbeddingJob(action="embed", note_id=note.id, owner_id=scope.owner_id)
        )
        return note

    async def update(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        data: NoteUpdate,
        dispatcher: JobDispatcher,
    ) -> Note:
        """
        Partially update a note.

        Raises:
            NotFoundError: If the note does not exist for this owner.
            ConflictError: If ``data.updated_at`` is set and no longer matches.
        """
        note = await self.get(session, scope, note_id)

        if data.updated_at is not None and _as_aware(data.updated_at) != _as_aware(
            note.updated_at
        ):
            raise ConflictError(
                "Note was modified by another request",
                details={"current_updated_at": note.updated_at.isoformat()},
            )

        changes: dict[str, Any] = data.model_dump(
            exclude_unset=True, exclude={"metadata", "updated_at"}
        )
        # Explicit nulls cannot clear required columns
        for field in EMBEDDED_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]
        meta = NoteMetadata.model_validate(note.note_metadata or {})
        reembed = any(
            field in changes and changes[field] != getattr(note, field)
            for field in EMBEDDED_FIELDS
        )

        if "content" in changes:
            content_plain = strip_markdown(changes["content"])
            changes["content_plain"] = content_plain
            meta.word_count = count_words(content_plain)
        if data.metadata is not None:
            meta.extra = {**meta.extra, **data.metadata}
        if reembed:
            meta.embedding_status = EmbeddingStatus.PENDING
            meta.embedding_error = None
        changes["note_metadata"] = meta.to_column()

        note = await note_repository.update(session, note, changes)
        logger.info("Note %s updated (reembed=%s)", note.id, reembed)

        if reembed:
            await dispatcher.dispatch(
                EmbeddingJob(action="reembed", note_id=note.id, owner_id=scope.owner_id)
            )
        return note

    async def delete(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        dispatcher: JobDispatcher,
    ) -> None:
        """Delete a note (links cascade) and schedule removal of its vector."""
        if not await note_repository.delete_by_id(session, scope, note_id):
            raise NotFoundError("Note not found")
        logger.info("Note %s deleted", note_id)
        await dispatcher.dispatch(
            EmbeddingJob(action="delete", note_id=note_id, owner_id=scope.owner_id)
        )


# Module-level instance for convenience imports
note_service = NoteService()

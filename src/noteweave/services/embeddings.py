"""
Embedding Service

Embedding lifecycle for notes, run outside the HTTP request lifecycle:

    pending --embed ok--> complete
    pending --retries exhausted / non-retryable--> failed
    any --content change / reembed--> pending

Every job opens its own database sessions (the request session is closed
by the time a background task runs) and talks to the vector store through
its own transactions. Outcomes are recorded in ``notes.metadata``; nothing
is raised back to the dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from noteweave.core.config import settings
from noteweave.core.database import get_session_factory
from noteweave.core.errors import TransientProviderError
from noteweave.core.isolation import OwnerScope
from noteweave.models import EmbeddingStatus, Note
from noteweave.repositories import note_repository
from noteweave.schemas.embeddings import BatchEmbedResult, EmbedResult
from noteweave.schemas.notes import NoteMetadata
from noteweave.services.ai import EmbeddingProvider, get_embedding_provider
from noteweave.services.vector_store import PgVectorStore, VectorStore

logger = logging.getLogger(__name__)


def build_embedding_text(note: Note) -> str:
    """Text submitted to the provider: title, blank line, plain content."""
    body = note.content_plain or note.content or ""
    return f"{note.title}\n\n{body}"


def build_vector_metadata(note: Note, tags: Sequence[str]) -> dict[str, Any]:
    """Metadata payload stored alongside the vector."""
    return {
        "owner_id": note.owner_id,
        "note_id": str(note.id),
        "title": note.title,
        "note_type": note.note_type.value,
        "tags": list(tags),
        "created_at": note.created_at.isoformat() if note.created_at else None,
        "updated_at": note.updated_at.isoformat() if note.updated_at else None,
    }


class EmbeddingManager:
    """
    Drives notes through the embedding state machine.

    Collaborators are resolved lazily so that constructing a manager never
    opens a database connection or loads a model.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        provider: EmbeddingProvider | None = None,
        store: VectorStore | None = None,
        *,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        batch_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._provider = provider
        self._store = store
        self.max_retries = settings.EMBEDDING_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.EMBEDDING_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        )
        self.batch_delay = settings.EMBEDDING_BATCH_DELAY if batch_delay is None else batch_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = get_embedding_provider()
        return self._provider

    @property
    def store(self) -> VectorStore:
        if self._store is None:
            self._store = PgVectorStore(self.session_factory)
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def process_note_embedding(
        self,
        note_id: UUID,
        owner_id: str,
        force: bool = False,
    ) -> EmbedResult:
        """
        Generate and store the embedding for a note.

        Args:
            note_id: Note to process.
            owner_id: Owner of the note; the note is read through this scope.
            force: Re-embed even when the note is already ``complete``.

        Returns:
            EmbedResult with the attempt count. Failures are reported in the
            result and in the note's metadata, never raised.
        """
        try:
            scope = OwnerScope(owner_id)
            async with self.session_factory() as session:
                note = await note_repository.get_by_id(session, scope, note_id)
                if note is None:
                    logger.warning("Note %s not found for embedding processing", note_id)
                    return EmbedResult(note_id=note_id, success=False, error="Note not found")

                meta = NoteMetadata.model_validate(note.note_metadata or {})
                if meta.embedding_status == EmbeddingStatus.COMPLETE and not force:
                    logger.debug("Note %s already embedded, skipping", note_id)
                    return EmbedResult(note_id=note_id, success=True, skipped=True)

                text = build_embedding_text(note)
                tags = await note_repository.get_tag_names(session, scope, note_id)
                vector_metadata = build_vector_metadata(note, tags)
                snapshot = note.updated_at
        except Exception as e:  # noqa: BLE001 - detached job, report in result
            logger.exception("Could not load note %s for embedding", note_id)
            return EmbedResult(note_id=note_id, success=False, error=str(e) or type(e).__name__)

        error: str | None = None
        attempts = 0
        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                vector = await self.provider.embed(text)
                await self.store.upsert(note_id, vector, vector_metadata)
            except TransientProviderError as e:
                error = str(e)
                if attempt >= self.max_retries:
                    break
                delay = self.retry_base_delay * (2**attempt)
                logger.warning(
                    "Transient embedding error for note %s (attempt %d/%d), retrying in %.1fs: %s",
                    note_id,
                    attempts,
                    self.max_retries + 1,
                    delay,
                    e,
                )
                await self._sleep(delay)
            except Exception as e:  # noqa: BLE001 - outcome is recorded on the note
                error = str(e) or type(e).__name__
                logger.error("Embedding failed for note %s (not retryable): %s", note_id, e)
                break
            else:
                await self._mark_complete(scope, note_id, snapshot)
                logger.info("Embedding generated for note %s (attempts=%d)", note_id, attempts)
                return EmbedResult(note_id=note_id, success=True, attempts=attempts)

        logger.error(
            "Failed to process embedding for note %s after %d attempts", note_id, attempts
        )
        await self._mark_failed(scope, note_id, error or "unknown error")
        return EmbedResult(note_id=note_id, success=False, attempts=attempts, error=error)

    async def embed_notes(
        self,
        note_ids: Sequence[UUID],
        owner_id: str,
        force: bool = False,
    ) -> BatchEmbedResult:
        """Embed notes one at a time with a short pause between items."""
        batch = BatchEmbedResult()
        for index, note_id in enumerate(note_ids):
            if index:
                await self._sleep(self.batch_delay)
            result = await self.process_note_embedding(note_id, owner_id, force=force)
            batch.results.append(result)
            if result.success:
                batch.succeeded += 1
            else:
                batch.failed += 1

        logger.info(
            "Batch embedding done: %d succeeded, %d failed", batch.succeeded, batch.failed
        )
        return batch

    async def reembed_note(self, note_id: UUID, owner_id: str) -> EmbedResult:
        """Reset a note to ``pending`` and embed it again."""
        scope = OwnerScope(owner_id)
        await self._update_metadata(
            scope,
            note_id,
            embedding_status=EmbeddingStatus.PENDING,
            embedding_error=None,
        )
        return await self.process_note_embedding(note_id, owner_id, force=True)

    async def delete_note_vector(self, note_id: UUID) -> None:
        """Remove the vector record of a deleted note."""
        await self.store.delete([note_id])
        logger.info("Vector removed for note %s", note_id)

    # ------------------------------------------------------------------
    # Metadata bookkeeping
    # ------------------------------------------------------------------

    async def _mark_complete(
        self,
        scope: OwnerScope,
        note_id: UUID,
        snapshot: datetime | None,
    ) -> None:
        now = datetime.now(UTC)
        try:
            async with self.session_factory() as session:
                note = await note_repository.get_by_id(session, scope, note_id)
                if note is None:
                    # Deleted while embedding: drop the orphaned vector
                    logger.info("Note %s vanished during embedding, removing vector", note_id)
                    await self.store.delete([note_id])
                    return
                if snapshot is not None and note.updated_at != snapshot:
                    # Edited while embedding: the edit queued its own job
                    logger.info("Note %s changed during embedding, leaving it pending", note_id)
                    return
                meta = NoteMetadata.model_validate(note.note_metadata or {})
                meta.embedding_status = EmbeddingStatus.COMPLETE
                meta.embedded_at = now
                meta.last_embed_attempt = now
                meta.embedding_error = None
                await note_repository.update_metadata(session, scope, note_id, meta.to_column())
        except Exception:
            logger.exception("Could not record embedding status for note %s", note_id)

    async def _mark_failed(self, scope: OwnerScope, note_id: UUID, error: str) -> None:
        await self._update_metadata(
            scope,
            note_id,
            embedding_status=EmbeddingStatus.FAILED,
            embedding_error=error[:500],
            last_embed_attempt=datetime.now(UTC),
        )

    async def _update_metadata(self, scope: OwnerScope, note_id: UUID, **changes: Any) -> None:
        try:
            async with self.session_factory() as session:
                note = await note_repository.get_by_id(session, scope, note_id)
                if note is None:
                    return
                meta = NoteMetadata.model_validate(note.note_metadata or {})
                updated = meta.model_copy(update=changes)
                await note_repository.update_metadata(
                    session, scope, note_id, updated.to_column()
                )
        except Exception:
            logger.exception("Could not record embedding status for note %s", note_id)


_manager: EmbeddingManager | None = None


def get_embedding_manager() -> EmbeddingManager:
    """Process-wide manager (lazy singleton)."""
    global _manager  # noqa: PLW0603
    if _manager is None:
        _manager = EmbeddingManager()
    return _manager

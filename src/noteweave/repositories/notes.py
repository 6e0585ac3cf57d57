"""
Note Repository

Data access layer for Note entities. Extends OwnedRepository with
filtered listing, tag lookup and targeted metadata updates used by the
embedding lifecycle.
"""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from noteweave.core.isolation import OwnerScope
from noteweave.models import Note, NoteType, Tag, note_tags
from noteweave.repositories.base import OwnedRepository


class NoteRepository(OwnedRepository[Note]):
    """
    Repository for Note entities.

    Inherits owner-scoped CRUD from OwnedRepository and adds:
        - list_notes: filtered, newest-first listing with total count
        - get_tag_names: tag names copied into vector metadata
        - update_metadata: targeted JSONB update for background jobs
    """

    def __init__(self) -> None:
        super().__init__(Note)

    @staticmethod
    def _filters(
        note_type: NoteType | None = None,
        min_mood: int | None = None,
        max_mood: int | None = None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if note_type is not None:
            conditions.append(Note.note_type == note_type)
        if min_mood is not None:
            conditions.append(Note.mood_score >= min_mood)
        if max_mood is not None:
            conditions.append(Note.mood_score <= max_mood)
        return conditions

    async def list_notes(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        *,
        limit: int = 20,
        offset: int = 0,
        note_type: NoteType | None = None,
        min_mood: int | None = None,
        max_mood: int | None = None,
    ) -> tuple[Sequence[Note], int]:
        """List the owner's notes, most recently updated first."""
        conditions = self._filters(note_type, min_mood, max_mood)
        stmt = (
            select(Note)
            .where(scope.where(Note, *conditions))
            .order_by(Note.updated_at.desc(), Note.id)
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(stmt)
        total = await self.count(session, scope, *conditions)
        return result.scalars().all(), total

    async def list_ids_by_status(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        statuses: Sequence[str],
    ) -> list[UUID]:
        """Ids of the owner's notes whose embedding status is in ``statuses``."""
        status_expr = Note.note_metadata["embedding_status"].astext
        stmt = (
            select(Note.id)
            .where(scope.where(Note, status_expr.in_(list(statuses))))
            .order_by(Note.created_at)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_tag_names(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
    ) -> list[str]:
        """Names of the tags attached to a note (owner-scoped on both sides)."""
        stmt = (
            select(Tag.name)
            .join(note_tags, note_tags.c.tag_id == Tag.id)
            .join(Note, Note.id == note_tags.c.note_id)
            .where(scope.where(Tag, scope.where(Note, Note.id == note_id)))
            .order_by(Tag.name)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def update_metadata(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        metadata: dict[str, Any],
    ) -> bool:
        """
        Replace the metadata column of a note without touching ``updated_at``.

        Used by background jobs: embedding bookkeeping is not a user edit,
        so it must not disturb recency ordering or optimistic locking.
        Uses a bulk UPDATE (no SELECT required).

        Returns:
            False when the note no longer exists for this owner.
        """
        stmt = (
            update(Note)
            .where(scope.where(Note, Note.id == note_id))
            .values(note_metadata=metadata, updated_at=Note.updated_at)
        )
        result = await session.execute(stmt)
        await session.commit()
        return bool(result.rowcount)


# Module-level instance for convenience imports
note_repository = NoteRepository()

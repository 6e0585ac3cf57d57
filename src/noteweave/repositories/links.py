"""
Link Repository

Data access for undirected note links. Every lookup matches the pair in
both orders, so callers never need to know which note was the source.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from noteweave.core.isolation import OwnerScope
from noteweave.models import NoteLink
from noteweave.repositories.base import OwnedRepository


def _pair(a: UUID, b: UUID) -> ColumnElement[bool]:
    """Match the unordered pair {a, b}."""
    return or_(
        and_(NoteLink.source_note_id == a, NoteLink.target_note_id == b),
        and_(NoteLink.source_note_id == b, NoteLink.target_note_id == a),
    )


class LinkRepository(OwnedRepository[NoteLink]):
    """Repository for NoteLink entities."""

    def __init__(self) -> None:
        super().__init__(NoteLink)

    async def find_between(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        a: UUID,
        b: UUID,
    ) -> NoteLink | None:
        """The link joining ``a`` and ``b`` in either direction, if any."""
        result = await session.execute(
            select(NoteLink).where(scope.where(NoteLink, _pair(a, b))).limit(1)
        )
        return result.scalars().first()

    async def delete_between(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        a: UUID,
        b: UUID,
    ) -> int:
        """Delete the link joining ``a`` and ``b``. Returns rows deleted."""
        result = await session.execute(
            delete(NoteLink).where(scope.where(NoteLink, _pair(a, b)))
        )
        await session.commit()
        return int(result.rowcount or 0)

    async def linked_ids(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        candidate_ids: Sequence[UUID],
    ) -> set[UUID]:
        """Subset of ``candidate_ids`` already linked to ``note_id`` (both directions)."""
        if not candidate_ids:
            return set()
        candidates = list(candidate_ids)
        stmt = select(NoteLink.source_note_id, NoteLink.target_note_id).where(
            scope.where(
                NoteLink,
                or_(
                    and_(
                        NoteLink.source_note_id == note_id,
                        NoteLink.target_note_id.in_(candidates),
                    ),
                    and_(
                        NoteLink.target_note_id == note_id,
                        NoteLink.source_note_id.in_(candidates),
                    ),
                ),
            )
        )
        result = await session.execute(stmt)
        return {
            target if source == note_id else source for source, target in result.all()
        }


# Module-level singleton for convenience imports
link_repository = LinkRepository()

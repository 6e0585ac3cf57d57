"""
Link Service

Explicit, undirected links between two notes of the same owner. A pair is
stored once regardless of direction; lookups and deletes match either
order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave.core.errors import DuplicateLinkError, NotFoundError, ValidationError
from noteweave.core.isolation import OwnerScope
from noteweave.models import LinkType, NoteLink
from noteweave.repositories import link_repository, note_repository

logger = logging.getLogger(__name__)


class LinkService:
    """Owner-scoped link operations."""

    async def create_link(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        source_id: UUID,
        target_id: UUID,
        link_type: LinkType = LinkType.MANUAL,
        strength: float = 1.0,
    ) -> NoteLink:
        """
        Link two notes.

        Raises:
            ValidationError: Self-link or strength outside [0, 1].
            NotFoundError: Either note does not exist for this owner.
            DuplicateLinkError: The pair is already linked, in either order.
        """
        if source_id == target_id:
            raise ValidationError("A note cannot be linked to itself")
        if not 0.0 <= strength <= 1.0:
            raise ValidationError("Link strength must be within [0, 1]")

        found = await note_repository.get_many(session, scope, [source_id, target_id])
        if len(found) != 2:
            raise NotFoundError("Note not found")

        existing = await link_repository.find_between(session, scope, source_id, target_id)
        if existing is not None:
            raise DuplicateLinkError("Notes are already linked", existing_link_id=existing.id)

        try:
            link = await link_repository.create(
                session,
                scope,
                {
                    "source_note_id": source_id,
                    "target_note_id": target_id,
                    "link_type": link_type,
                    "strength": strength,
                },
            )
        except IntegrityError as e:
            # Concurrent insert of the same pair hit the unique index
            await session.rollback()
            raise DuplicateLinkError("Notes are already linked") from e

        logger.info("Linked notes %s <-> %s (%s)", source_id, target_id, link_type.value)
        return link

    async def delete_link(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        a: UUID,
        b: UUID,
    ) -> None:
        """Remove the link between ``a`` and ``b``, whichever way it was created."""
        if not await link_repository.delete_between(session, scope, a, b):
            raise NotFoundError("Link not found")
        logger.info("Unlinked notes %s <-> %s", a, b)

    async def is_linked(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        a: UUID,
        b: UUID,
    ) -> bool:
        return await link_repository.find_between(session, scope, a, b) is not None

    async def linked_ids(
        self,
        session: AsyncSession,
        scope: OwnerScope,
        note_id: UUID,
        candidates: Sequence[UUID],
    ) -> set[UUID]:
        return await link_repository.linked_ids(session, scope, note_id, candidates)


# Module-level instance for convenience imports
link_service = LinkService()

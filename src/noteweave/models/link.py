"""
Note Link Model

Undirected relationship between two notes of the same owner. Stored once
per unordered pair: the migration adds a unique index over
``least(source, target), greatest(source, target)`` on top of the
constraints declared here.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from noteweave.models.base import Base


class LinkType(str, enum.Enum):
    REFERENCE = "reference"
    AI_SUGGESTED = "ai_suggested"
    MANUAL = "manual"


class NoteLink(Base):
    """
    Link between two notes.

    Attributes:
        id: UUID primary key.
        owner_id: Owner of both linked notes.
        source_note_id: Note the link was created from (CASCADE delete).
        target_note_id: Note the link points to (CASCADE delete).
        link_type: ``reference``, ``ai_suggested`` or ``manual``.
        strength: Relationship strength in [0, 1].
    """

    __tablename__ = "note_links"
    __table_args__ = (
        CheckConstraint("source_note_id <> target_note_id", name="ck_note_links_no_self"),
        CheckConstraint("strength >= 0 AND strength <= 1", name="ck_note_links_strength"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    source_note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_note_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("notes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    link_type: Mapped[LinkType] = mapped_column(
        Enum(
            LinkType,
            name="link_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=LinkType.MANUAL,
    )
    strength: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def other(self, note_id: uuid.UUID) -> uuid.UUID:
        """The endpoint of this link that is not ``note_id``."""
        return self.target_note_id if self.source_note_id == note_id else self.source_note_id

    def __repr__(self) -> str:
        return (
            f"<NoteLink({self.source_note_id!s:.8} <-> {self.target_note_id!s:.8}, "
            f"type={self.link_type.value})>"
        )

"""
Note Model

Core entity of the knowledge base. The relational row is authoritative;
its embedding lives in the vector store and is tracked here only through
``metadata.embedding_status``.
"""

from __future__ import annotations

import enum
import uuid
from typing import Any

from sqlalchemy import Enum, Float, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from noteweave.models.base import Base, TimestampMixin


class NoteType(str, enum.Enum):
    NOTE = "note"
    JOURNAL = "journal"


class EmbeddingStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"


class Note(Base, TimestampMixin):
    """
    Note entity.

    Attributes:
        id: UUID primary key (generated Python-side).
        owner_id: Owning user; every query is scoped on it.
        title: Note title (max 500 chars).
        content: Markdown source.
        content_plain: Markdown-stripped text, derived from ``content`` and
            used by the full-text index.
        note_type: ``note`` or ``journal``.
        source_url: Optional origin URL.
        mood_score: Optional 1-10 mood rating.
        quality_score: Optional 0-1 quality metric.
        template_id: Optional template reference.
        note_metadata: JSONB blob validated through ``NoteMetadata``
            (embedding status, word count, extension fields).
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_plain: Mapped[str | None] = mapped_column(Text, nullable=True)
    note_type: Mapped[NoteType] = mapped_column(
        Enum(
            NoteType,
            name="note_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=NoteType.NOTE,
        index=True,
    )
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    mood_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quality_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    template_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )

    @property
    def embedding_status(self) -> EmbeddingStatus:
        raw = (self.note_metadata or {}).get("embedding_status")
        return EmbeddingStatus(raw) if raw else EmbeddingStatus.PENDING

    def __repr__(self) -> str:
        return f"<Note(id={self.id!s:.8}, title='{self.title[:20]}...')>"

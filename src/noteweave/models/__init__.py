"""Models package - re-exports all models for convenient imports."""

from noteweave.models.base import Base, TimestampMixin
from noteweave.models.embedding import NoteEmbedding
from noteweave.models.link import LinkType, NoteLink
from noteweave.models.note import EmbeddingStatus, Note, NoteType
from noteweave.models.tag import Tag, note_tags

__all__ = [
    "Base",
    "TimestampMixin",
    "EmbeddingStatus",
    "LinkType",
    "Note",
    "NoteEmbedding",
    "NoteLink",
    "NoteType",
    "Tag",
    "note_tags",
]

"""Repositories package."""

from noteweave.repositories.base import OwnedRepository
from noteweave.repositories.links import LinkRepository, link_repository
from noteweave.repositories.notes import NoteRepository, note_repository
from noteweave.repositories.search import (
    LexicalSearchRepository,
    lexical_search_repository,
    sanitize_search_query,
)

__all__ = [
    "OwnedRepository",
    "LexicalSearchRepository",
    "LinkRepository",
    "NoteRepository",
    "lexical_search_repository",
    "link_repository",
    "note_repository",
    "sanitize_search_query",
]

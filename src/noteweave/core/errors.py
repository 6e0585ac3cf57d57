"""
Error Taxonomy

Domain exceptions raised by repositories and services. The API layer maps
them to HTTP responses in ``noteweave.main``; background jobs catch them
and record the outcome in note metadata instead.
"""

from __future__ import annotations

from typing import Any


class NoteweaveError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(NoteweaveError):
    """Malformed query, filters or input. Never retried."""

    status_code = 400


class OwnerRequiredError(NoteweaveError):
    """An operation was attempted without an owner identifier."""

    status_code = 401


class NotFoundError(NoteweaveError):
    """
    Entity does not exist for this owner.

    Raised identically for missing rows and rows owned by someone else,
    so existence never leaks across owners.
    """

    status_code = 404


class ConflictError(NoteweaveError):
    """Optimistic-lock mismatch on update."""

    status_code = 409


class DuplicateLinkError(ConflictError):
    """A link already exists between the two notes (in either direction)."""

    def __init__(self, message: str, *, existing_link_id: Any = None) -> None:
        details = None if existing_link_id is None else {"existing_link_id": str(existing_link_id)}
        super().__init__(message, details=details)
        self.existing_link_id = existing_link_id


class ProviderError(NoteweaveError):
    """Embedding provider failure that retrying will not fix."""

    status_code = 502


class TransientProviderError(ProviderError):
    """Rate limit, timeout or 5xx from the embedding provider. Retryable."""


class ConsistencyError(NoteweaveError):
    """
    The vector store has no record for a note expected to have one.

    Callers treat this as "no embedding yet", not as a hard failure.
    """

    status_code = 404


class ConfigurationError(NoteweaveError):
    """Settings that cannot work together. Raised at startup."""

"""
Owner Isolation

Application-level row ownership. Every query issued by a repository is
built through an ``OwnerScope`` so the owner predicate cannot be forgotten,
and every new row is stamped with the owner before insert.

The scope is an explicit value passed into each data-access call. There is
no "current user" session variable to set or forget.

Usage::

    scope = OwnerScope(owner_id)
    stmt = select(Note).where(scope.where(Note, Note.id == note_id))
    note = Note(**scope.values({"title": "Hello", ...}))
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from noteweave.core.errors import OwnerRequiredError


class OwnedModel(Protocol):
    """Any mapped class carrying an ``owner_id`` column."""

    owner_id: Any


@dataclass(frozen=True, slots=True)
class OwnerScope:
    """
    Owner-scoping predicate and value stamper.

    Attributes:
        owner_id: Authenticated owner identifier. Must be a non-empty string.

    Raises:
        OwnerRequiredError: On construction with an empty or missing owner,
            so an unscoped operation fails closed instead of reading all rows.
    """

    owner_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.owner_id, str) or not self.owner_id.strip():
            raise OwnerRequiredError("An owner identifier is required")

    def where(
        self,
        model: type[OwnedModel],
        *conditions: ColumnElement[bool] | None,
    ) -> ColumnElement[bool]:
        """Owner equality conjoined with every non-None extra condition."""
        owner_check = model.owner_id == self.owner_id
        extra = [c for c in conditions if c is not None]
        if not extra:
            return owner_check
        return and_(owner_check, *extra)

    def values(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Copy ``data`` and stamp it with this owner (overrides any owner_id given)."""
        return {**data, "owner_id": self.owner_id}

    def values_many(self, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Stamp every row in ``rows``."""
        return [self.values(row) for row in rows]


def require_scope(owner_id: str | None) -> OwnerScope:
    """Build a scope from a possibly-missing owner id (fails closed)."""
    if owner_id is None:
        raise OwnerRequiredError("An owner identifier is required")
    return OwnerScope(owner_id)

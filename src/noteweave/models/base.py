"""
SQLAlchemy Base Models

Declarative base with a constraint naming convention, and the note
timestamp mixin.
"""

from datetime import datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

# Mirrors PostgreSQL's own default names (and the names used by the
# migrations) so autogenerate never sees spurious renames.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "%(table_name)s_%(column_0_name)s_fkey",
    "pk": "%(table_name)s_pkey",
}


class Base(DeclarativeBase):
    """Declarative base class for all noteweave ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class TimestampMixin:
    """
    created_at / updated_at columns.

    ``updated_at`` is never NULL: recency breaks ties in every ranked
    listing and backs optimistic locking, so it must always be comparable.
    Background bookkeeping that must not count as an edit sets it to its
    current value explicitly (see ``NoteRepository.update_metadata``).
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),  # Database-side default, not Python-side
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),  # Refreshed on any UPDATE that doesn't set it
        nullable=False,
    )

"""initial schema: notes, links, tags, note embeddings

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import JSONB

from noteweave.core.config import settings

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Fixed at creation time: changing providers later needs a new migration
EMBEDDING_DIMENSION = settings.EMBEDDING_DIMENSION

note_type = postgresql.ENUM("note", "journal", name="note_type", create_type=False)
link_type = postgresql.ENUM(
    "reference", "ai_suggested", "manual", name="link_type", create_type=False
)


def upgrade() -> None:
    """Create the relational schema, the full-text index and the vector store."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")
    note_type.create(op.get_bind(), checkfirst=True)
    link_type.create(op.get_bind(), checkfirst=True)

    # -- notes --
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_plain", sa.Text(), nullable=True),
        sa.Column("note_type", note_type, nullable=False, server_default="note"),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("mood_score", sa.Integer(), nullable=True),
        sa.Column("quality_score", sa.Float(), nullable=True),
        sa.Column("template_id", sa.String(255), nullable=True),
        sa.Column(
            "metadata",
            JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "mood_score IS NULL OR (mood_score >= 1 AND mood_score <= 10)",
            name="ck_notes_mood_score",
        ),
    )
    op.create_index("ix_notes_owner_id", "notes", ["owner_id"])
    op.create_index("ix_notes_note_type", "notes", ["note_type"])
    op.create_index("ix_notes_owner_updated_at", "notes", ["owner_id", "updated_at"])

    # Full-text index; the expression must match LexicalSearchRepository exactly
    op.execute(
        """
        CREATE INDEX ix_notes_fts
        ON notes
        USING gin (
            to_tsvector(
                'english'::regconfig,
                coalesce(content_plain, '') || ' ' || coalesce(title, '')
            )
        )
        """
    )

    # -- tags --
    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "name", name="uq_tags_owner_name"),
    )
    op.create_index("ix_tags_owner_id", "tags", ["owner_id"])

    op.create_table(
        "note_tags",
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("tag_id", sa.Uuid(), nullable=False),
        sa.PrimaryKeyConstraint("note_id", "tag_id"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
    )

    # -- note_links --
    op.create_table(
        "note_links",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("source_note_id", sa.Uuid(), nullable=False),
        sa.Column("target_note_id", sa.Uuid(), nullable=False),
        sa.Column("link_type", link_type, nullable=False, server_default="manual"),
        sa.Column("strength", sa.Float(), nullable=False, server_default=sa.text("1.0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["source_note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["target_note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.CheckConstraint("source_note_id <> target_note_id", name="ck_note_links_no_self"),
        sa.CheckConstraint("strength >= 0 AND strength <= 1", name="ck_note_links_strength"),
    )
    op.create_index("ix_note_links_owner_id", "note_links", ["owner_id"])
    op.create_index("ix_note_links_source_note_id", "note_links", ["source_note_id"])
    op.create_index("ix_note_links_target_note_id", "note_links", ["target_note_id"])
    # One row per unordered pair
    op.execute(
        """
        CREATE UNIQUE INDEX uq_note_links_pair
        ON note_links (
            least(source_note_id, target_note_id),
            greatest(source_note_id, target_note_id)
        )
        """
    )

    # -- note_embeddings (vector store, no FK: eventually consistent) --
    op.create_table(
        "note_embeddings",
        sa.Column("note_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("embedding", Vector(EMBEDDING_DIMENSION), nullable=False),
        sa.Column(
            "metadata",
            JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("note_id"),
    )
    op.create_index("ix_note_embeddings_owner_id", "note_embeddings", ["owner_id"])
    op.execute(
        """
        CREATE INDEX ix_note_embeddings_metadata
        ON note_embeddings
        USING gin (metadata)
        """
    )

    # HNSW index for fast cosine similarity search
    op.execute(
        """
        CREATE INDEX ix_note_embeddings_hnsw
        ON note_embeddings
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
        """
    )


def downgrade() -> None:
    """Drop every table and type created above."""
    op.execute("DROP INDEX IF EXISTS ix_note_embeddings_hnsw")
    op.execute("DROP INDEX IF EXISTS ix_note_embeddings_metadata")
    op.drop_index("ix_note_embeddings_owner_id", table_name="note_embeddings")
    op.drop_table("note_embeddings")

    op.execute("DROP INDEX IF EXISTS uq_note_links_pair")
    op.drop_index("ix_note_links_target_note_id", table_name="note_links")
    op.drop_index("ix_note_links_source_note_id", table_name="note_links")
    op.drop_index("ix_note_links_owner_id", table_name="note_links")
    op.drop_table("note_links")

    op.drop_table("note_tags")
    op.drop_index("ix_tags_owner_id", table_name="tags")
    op.drop_table("tags")

    op.execute("DROP INDEX IF EXISTS ix_notes_fts")
    op.drop_index("ix_notes_owner_updated_at", table_name="notes")
    op.drop_index("ix_notes_note_type", table_name="notes")
    op.drop_index("ix_notes_owner_id", table_name="notes")
    op.drop_table("notes")

    link_type.drop(op.get_bind(), checkfirst=True)
    note_type.drop(op.get_bind(), checkfirst=True)

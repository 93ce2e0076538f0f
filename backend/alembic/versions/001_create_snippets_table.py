"""Create snippets and snippet_tags tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `snippets` table and its ordered `snippet_tags` child table.
Why:   Core data model: every snippet is one row, every tag one child row.
How:   Generic column types (sa.Uuid, DateTime(timezone=True)) so the same
       migration runs on PostgreSQL and SQLite.

Rollback: downgrade() drops both tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create snippets, snippet_tags and their indexes.

    Column rationale lives in app/models/snippet.py.
    """
    op.create_table(
        "snippets",

        # Assigned in Python (uuid4), never reassigned
        sa.Column("id", sa.Uuid(), nullable=False, comment="Store-assigned identifier"),

        sa.Column("name", sa.String(255), nullable=False, comment="Snippet name, trimmed, never empty"),

        sa.Column(
            "language",
            sa.String(100),
            nullable=False,
            server_default=sa.text("'javascript'"),
        ),

        sa.Column("code", sa.Text(), nullable=False, server_default=sa.text("''")),

        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),

        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),

        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),

        sa.PrimaryKeyConstraint("id"),
    )

    # Default listing order is newest first
    op.create_index("idx_snippets_created_at", "snippets", [sa.text("created_at DESC")])
    op.create_index("ix_snippets_language", "snippets", ["language"])

    op.create_table(
        "snippet_tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("snippet_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, comment="0-based index in the tag list"),
        sa.Column("value", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["snippet_id"], ["snippets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_snippet_tags_snippet_id", "snippet_tags", ["snippet_id"])


def downgrade() -> None:
    """
    Drop snippet_tags, then snippets.

    WARNING: destructive. Archive data with a forward migration instead when
    a production table has to go.
    """
    op.drop_index("ix_snippet_tags_snippet_id", table_name="snippet_tags")
    op.drop_table("snippet_tags")
    op.drop_index("ix_snippets_language", table_name="snippets")
    op.drop_index("idx_snippets_created_at", table_name="snippets")
    op.drop_table("snippets")

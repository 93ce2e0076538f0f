"""
SnipSync Backend — Snippet SQLAlchemy Models
==============================================

What:  ORM models for the `snippets` table and its ordered `snippet_tags` rows.
Why:   Maps Python objects to database rows for type-safe database operations.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used by SnippetStore for CRUD operations and by Alembic for schema management.

Table Design Rationale:
    - UUID primary key generated in Python (uuid4) so the id is known at flush
      on every backend, PostgreSQL and SQLite alike.
    - Tags live in a child table with an explicit `position` column:
      order is preserved exactly as supplied, duplicates are allowed, and the
      free-text search can match a single tag with a plain LIKE predicate.
    - created_at / updated_at are set by the store, not by server defaults,
      so the response can be built without a refresh round trip.

    Index on created_at DESC:
        Optimizes the default listing order (newest first).
"""

import uuid
from datetime import datetime, timezone
from typing import List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

DEFAULT_LANGUAGE = "javascript"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnippetTag(Base):
    """One tag of a snippet, at a fixed position in the snippet's tag list."""

    __tablename__ = "snippet_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snippet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("snippets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Maintained by ordering_list on Snippet.tag_rows
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<SnippetTag(position={self.position}, value='{self.value}')>"


class Snippet(Base):
    """
    A named, language-labeled code snippet.

    Lifecycle:
        1. Created by SnippetStore.create (created_at == updated_at)
        2. Updated in place; only supplied fields change, updated_at moves forward
        3. Hard-deleted; tag rows go with it (ORM cascade + ON DELETE CASCADE)

    Concurrent updates of the same row are last-write-wins: there is no
    version column.
    """

    __tablename__ = "snippets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Store-assigned identifier, never reassigned",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Snippet name, trimmed, never empty",
    )

    language: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default=DEFAULT_LANGUAGE,
        index=True,
    )

    code: Mapped[str] = mapped_column(Text, nullable=False, default="")

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    tag_rows: Mapped[List[SnippetTag]] = relationship(
        order_by=SnippetTag.position,
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        # selectin: async sessions cannot lazy-load on attribute access
        lazy="selectin",
    )

    # Plain list-of-strings view over tag_rows; assigning replaces all tags
    tags: AssociationProxy[List[str]] = association_proxy(
        "tag_rows", "value", creator=lambda value: SnippetTag(value=value)
    )

    __table_args__ = (
        Index("idx_snippets_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<Snippet(id={self.id}, name='{self.name}', "
            f"language='{self.language}')>"
        )

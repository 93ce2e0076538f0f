"""
SnipSync Backend — Snippet Store (Persistence Layer)
======================================================

What:  Owns the durable representation of snippets: create, read, update,
       delete, filtered/sorted listing and distinct-language enumeration.
Why:   Keeps every SQL statement in one place so SnippetService deals only in
       request rules and the taxonomy of app.exceptions.
How:   Async SQLAlchemy statements against the session handed in per call.
       Mutating operations flush and commit before returning, so a caller
       that receives a record knows it is durable.
Who:   Called by SnippetService only.

Error Normalization:
    IntegrityError   → DuplicateKeyError (400, names the offending field)
    SQLAlchemyError  → DatabaseError     (500, details logged server-side)
    unknown id       → NotFoundError     (404), malformed UUIDs included

Concurrency:
    No locking and no version column: two updates of the same id race at the
    database and the last commit wins.
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    NotFoundError,
    ValidationError,
)
from app.models.snippet import DEFAULT_LANGUAGE, Snippet, SnippetTag, utcnow

logger = logging.getLogger(__name__)

# Public sort keys (camelCase, as sent by the front-end) → columns
SORT_FIELDS = {
    "createdAt": Snippet.created_at,
    "updatedAt": Snippet.updated_at,
    "name": Snippet.name,
    "language": Snippet.language,
}

LIKE_ESCAPE = "\\"

# "UNIQUE constraint failed: snippets.name" (SQLite) / "Key (name)=(x)" (PostgreSQL)
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_POSTGRES_KEY = re.compile(r"Key \((\w+)\)=")


def contains_pattern(term: str) -> str:
    """LIKE pattern matching `term` as a literal substring."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def parse_snippet_id(snippet_id: Any) -> uuid.UUID:
    """Resolve a path/event id to a UUID; anything unparseable is simply not found."""
    if isinstance(snippet_id, uuid.UUID):
        return snippet_id
    try:
        return uuid.UUID(str(snippet_id))
    except (TypeError, ValueError):
        raise NotFoundError(resource="snippet", resource_id=str(snippet_id))


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """
    A UTC timestamp strictly later than `previous`.

    SQLite hands datetimes back naive; they were written as UTC.
    """
    now = utcnow()
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = previous.replace(tzinfo=timezone.utc)
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


def offending_field(exc: IntegrityError) -> str:
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in (_SQLITE_UNIQUE, _POSTGRES_KEY):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return "id"


class SnippetStore:
    """
    Durable CRUD over the `snippets` table.

    Every method receives the request's AsyncSession; the store itself holds
    no state and no cache.
    """

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        language: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> List[Snippet]:
        """
        Filtered, sorted listing.

        `search` is a case-insensitive substring match OR-ed over name,
        language, description and each individual tag. `language` is an
        independent case-insensitive substring filter. `order` other than
        "asc" means descending.

        Raises:
            ValidationError: `sort_by` is not a sortable field
            DatabaseError: query execution failed
        """
        column = SORT_FIELDS.get(sort_by)
        if column is None:
            raise ValidationError(
                message=f"Cannot sort by '{sort_by}'. Use one of: {', '.join(SORT_FIELDS)}",
                field="sortBy",
            )
        direction = asc if order == "asc" else desc

        query = select(Snippet)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    Snippet.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Snippet.language.ilike(pattern, escape=LIKE_ESCAPE),
                    Snippet.description.ilike(pattern, escape=LIKE_ESCAPE),
                    Snippet.tag_rows.any(SnippetTag.value.ilike(pattern, escape=LIKE_ESCAPE)),
                )
            )
        if language:
            query = query.where(
                Snippet.language.ilike(contains_pattern(language), escape=LIKE_ESCAPE)
            )
        # id as tie-breaker keeps equal timestamps in a stable order
        query = query.order_by(direction(column), direction(Snippet.id))

        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing snippets: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve snippets. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get(self, db: AsyncSession, snippet_id: Any) -> Snippet:
        """
        Fetch one snippet.

        Raises:
            NotFoundError: id is malformed or does not resolve
            DatabaseError: query execution failed
        """
        key = parse_snippet_id(snippet_id)
        try:
            result = await db.execute(select(Snippet).where(Snippet.id == key))
            snippet = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching snippet %s: %s", key, str(e))
            raise DatabaseError(
                message="Could not retrieve the snippet. Please try again.",
                context={"snippet_id": str(key)},
            )
        if snippet is None:
            raise NotFoundError(resource="snippet", resource_id=str(key))
        return snippet

    async def distinct_languages(self, db: AsyncSession) -> List[str]:
        """Every distinct `language` value (exact, case-sensitive), sorted."""
        try:
            result = await db.execute(
                select(Snippet.language).distinct().order_by(Snippet.language)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing languages: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve languages. Please try again.",
                context={"error_type": type(e).__name__},
            )

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, fields: Dict[str, Any]) -> Snippet:
        """
        Insert a snippet; assigns id, created_at and updated_at (equal).

        Raises:
            ValidationError: `name` missing or blank
            DuplicateKeyError / DatabaseError: commit failed
        """
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError(message="Please provide a snippet name", field="name")

        now = utcnow()
        snippet = Snippet(
            name=name,
            language=(fields.get("language") or "").strip() or DEFAULT_LANGUAGE,
            code=fields.get("code") or "",
            description=fields.get("description") or "",
            created_at=now,
            updated_at=now,
            # Set the collection itself, even when empty: an unset relationship
            # would lazy-load after commit, which async sessions cannot do
            tag_rows=[
                SnippetTag(position=i, value=value)
                for i, value in enumerate(fields.get("tags") or [])
            ],
        )
        db.add(snippet)
        await self._commit(db, "create")
        logger.info("Snippet created: %s (%s)", snippet.id, snippet.language)
        return snippet

    async def update(
        self, db: AsyncSession, snippet_id: Any, fields: Dict[str, Any]
    ) -> Snippet:
        """
        Merge `fields` into an existing snippet.

        Only keys present in `fields` are written. updated_at always moves
        strictly forward, even for an empty merge.

        Raises:
            NotFoundError: id does not resolve
            ValidationError: the merged name or language would be blank
            DuplicateKeyError / DatabaseError: commit failed
        """
        snippet = await self.get(db, snippet_id)

        for attr in ("name", "language"):
            if attr in fields and not (fields[attr] or "").strip():
                raise ValidationError(
                    message=f"Snippet {attr} cannot be empty", field=attr
                )

        if "name" in fields:
            snippet.name = fields["name"].strip()
        if "language" in fields:
            snippet.language = fields["language"].strip()
        if "code" in fields:
            snippet.code = fields["code"]
        if "description" in fields:
            snippet.description = fields["description"]
        if "tags" in fields:
            snippet.tags = list(fields["tags"])
        snippet.updated_at = next_timestamp(snippet.updated_at)

        await self._commit(db, "update")
        logger.info("Snippet updated: %s (fields=%s)", snippet.id, sorted(fields))
        return snippet

    async def delete(self, db: AsyncSession, snippet_id: Any) -> uuid.UUID:
        """
        Hard-delete a snippet and its tags; returns the deleted id.

        Raises:
            NotFoundError: id does not resolve (store left unchanged)
        """
        snippet = await self.get(db, snippet_id)
        await db.delete(snippet)
        await self._commit(db, "delete")
        logger.info("Snippet deleted: %s", snippet.id)
        return snippet.id

    async def _commit(self, db: AsyncSession, operation: str) -> None:
        """Flush + commit, translating driver errors into the app taxonomy."""
        try:
            await db.flush()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            field = offending_field(e)
            logger.warning("Snippet %s rejected, duplicate %s", operation, field)
            raise DuplicateKeyError(field=field)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error during snippet %s: %s", operation, str(e), exc_info=True)
            raise DatabaseError(context={"operation": operation, "error_type": type(e).__name__})


# ── Singleton Instance ────────────────────────────────────────────────────
snippet_store = SnippetStore()

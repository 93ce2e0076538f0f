"""
SnipSync Backend — Snippet Service (Mutation Service)
=======================================================

What:  Request validation, defaulting and error normalization around SnippetStore.
Why:   Keeps HTTP-independent business rules in one place; routes stay thin.
How:   Converts request schemas into store field dicts, calls the store, and
       wraps the resulting records in the response envelope.
Who:   Called by the /api/snippets route handlers.

Commit vs. Broadcast:
    ┌──────────┐    ┌──────────────┐    ┌──────────┐
    │  Route   │───▶│ SnippetServ. │───▶│  Store   │  (commit, then respond)
    └──────────┘    └──────────────┘    └──────────┘

    ┌──────────┐    ┌──────────────┐    ┌──────────────────────┐
    │  Client  │───▶│  /ws frame   │───▶│  BroadcastRelay      │  (separate, best-effort)
    └──────────┘    └──────────────┘    └──────────────────────┘

    This service's contract ends at the durable commit. It never publishes
    real-time events: the client that saw the successful response emits
    create-snippet / update-snippet / delete-snippet itself, and nothing
    here waits for, depends on, or rolls back because of that broadcast.

Update Semantics:
    The PUT body is turned into a SnippetChanges, one FieldUpdate per
    attribute, so "not sent" and "sent as null" are different states:

        field        absent      null          value
        ──────────── ─────────── ───────────── ─────────────────────────
        name         unchanged   unchanged     trimmed, must be non-blank
        language     unchanged   unchanged     trimmed, must be non-blank
        code         unchanged   unchanged     overwritten ("" allowed)
        description  unchanged   set to ""     overwritten ("" allowed)
        tags         unchanged   unchanged     replaced, order preserved
"""

import logging
from dataclasses import dataclass, fields as dataclass_fields
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.snippet import DEFAULT_LANGUAGE, Snippet
from app.schemas.snippet import (
    DeleteEnvelope,
    LanguageListEnvelope,
    SnippetCreate,
    SnippetEnvelope,
    SnippetListEnvelope,
    SnippetResponse,
    SnippetUpdate,
)
from app.services.snippet_store import snippet_store

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields whose explicit null means "clear" rather than "leave unchanged"
NULLABLE_FIELDS = frozenset({"description"})
NULL_VALUES: Dict[str, Any] = {"description": ""}


@dataclass(frozen=True)
class FieldUpdate(Generic[T]):
    """One attribute of an update request: absent, or present with a value (maybe None)."""

    present: bool = False
    value: Optional[T] = None

    @classmethod
    def absent(cls) -> "FieldUpdate[T]":
        return cls()

    @classmethod
    def of(cls, value: Optional[T]) -> "FieldUpdate[T]":
        return cls(present=True, value=value)


@dataclass(frozen=True)
class SnippetChanges:
    """Per-field update wrapper built from a PUT body."""

    name: FieldUpdate[str] = FieldUpdate()
    language: FieldUpdate[str] = FieldUpdate()
    code: FieldUpdate[str] = FieldUpdate()
    description: FieldUpdate[str] = FieldUpdate()
    tags: FieldUpdate[List[str]] = FieldUpdate()

    @classmethod
    def from_request(cls, payload: SnippetUpdate) -> "SnippetChanges":
        supplied = payload.model_fields_set
        return cls(**{
            f.name: FieldUpdate.of(getattr(payload, f.name))
            for f in dataclass_fields(cls)
            if f.name in supplied
        })

    def to_fields(self) -> Dict[str, Any]:
        """
        Store field dict holding only the attributes that will be written.

        Raises:
            ValidationError: name or language supplied but blank
        """
        result: Dict[str, Any] = {}
        for f in dataclass_fields(self):
            update: FieldUpdate = getattr(self, f.name)
            if not update.present:
                continue
            if update.value is None:
                if f.name in NULLABLE_FIELDS:
                    result[f.name] = NULL_VALUES[f.name]
                continue
            result[f.name] = update.value

        for required in ("name", "language"):
            if required in result:
                result[required] = result[required].strip()
                if not result[required]:
                    raise ValidationError(
                        message=f"Snippet {required} cannot be empty", field=required
                    )
        return result


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything is stored as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def to_response(snippet: Snippet) -> SnippetResponse:
    """Build the API/event representation of a stored snippet."""
    return SnippetResponse(
        id=snippet.id,
        name=snippet.name,
        language=snippet.language,
        code=snippet.code,
        description=snippet.description,
        tags=list(snippet.tags),
        created_at=_as_utc(snippet.created_at),
        updated_at=_as_utc(snippet.updated_at),
    )


class SnippetService:
    """
    Business logic layer for snippet operations.

    Responsibilities:
        - create_snippet(): validate + default, then insert
        - update_snippet(): presence-aware merge
        - delete_snippet(): hard delete with acknowledgment
        - get_snippet() / list_snippets() / list_by_language() / list_languages()

    Error Handling Strategy:
        Validation failures are raised before the store is touched. Store
        errors (NotFoundError, DuplicateKeyError, DatabaseError) already
        belong to the app taxonomy and propagate unchanged.
    """

    async def list_snippets(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        language: Optional[str] = None,
        sort_by: str = "createdAt",
        order: str = "desc",
    ) -> SnippetListEnvelope:
        snippets = await snippet_store.list(
            db, search=search, language=language, sort_by=sort_by, order=order
        )
        data = [to_response(s) for s in snippets]
        return SnippetListEnvelope(count=len(data), data=data)

    async def list_by_language(self, db: AsyncSession, language: str) -> SnippetListEnvelope:
        """Snippets whose language contains `language` (case-insensitive), newest first."""
        return await self.list_snippets(db, language=language)

    async def list_languages(self, db: AsyncSession) -> LanguageListEnvelope:
        languages = await snippet_store.distinct_languages(db)
        return LanguageListEnvelope(count=len(languages), data=languages)

    async def get_snippet(self, db: AsyncSession, snippet_id: str) -> SnippetEnvelope:
        snippet = await snippet_store.get(db, snippet_id)
        return SnippetEnvelope(data=to_response(snippet))

    async def create_snippet(self, db: AsyncSession, payload: SnippetCreate) -> SnippetEnvelope:
        """
        Validate and insert a new snippet.

        Defaults:
            language → "javascript" when absent, null or blank
            code, description → "" when absent or null
            tags → [] when absent or null

        Raises:
            ValidationError: name missing or blank (store untouched)
        """
        name = (payload.name or "").strip()
        if not name:
            raise ValidationError(message="Please provide a snippet name", field="name")

        fields = {
            "name": name,
            "language": (payload.language or "").strip() or DEFAULT_LANGUAGE,
            "code": payload.code if payload.code is not None else "",
            "description": payload.description if payload.description is not None else "",
            "tags": list(payload.tags) if payload.tags is not None else [],
        }
        snippet = await snippet_store.create(db, fields)
        return SnippetEnvelope(message="Snippet created successfully", data=to_response(snippet))

    async def update_snippet(
        self, db: AsyncSession, snippet_id: str, payload: SnippetUpdate
    ) -> SnippetEnvelope:
        """
        Apply only the supplied fields of `payload` (see module docstring).

        Raises:
            NotFoundError: id does not resolve
            ValidationError: supplied name/language is blank
        """
        fields = SnippetChanges.from_request(payload).to_fields()
        snippet = await snippet_store.update(db, snippet_id, fields)
        return SnippetEnvelope(message="Snippet updated successfully", data=to_response(snippet))

    async def delete_snippet(self, db: AsyncSession, snippet_id: str) -> DeleteEnvelope:
        await snippet_store.delete(db, snippet_id)
        return DeleteEnvelope(message="Snippet deleted successfully", data={})


# ── Singleton Instance ────────────────────────────────────────────────────
# Stateless; the per-request session is passed into every call
snippet_service = SnippetService()

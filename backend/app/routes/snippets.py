"""
SnipSync Backend — Snippet Route Handlers
===========================================

What:  The /api/snippets REST surface.
Why:   CRUD, search and language listing for the front-end.
How:   Extracts path/query/body values, delegates to SnippetService, returns
       the response envelope. Errors are raised and turned into responses by
       the global handlers in main.py.

Endpoints:
    GET    /api/snippets                      list (search, language, sortBy, order)
    POST   /api/snippets                      create → 201
    GET    /api/snippets/languages/all        distinct languages
    GET    /api/snippets/language/{language}  by language, newest first
    GET    /api/snippets/{id}                 one snippet or 404
    PUT    /api/snippets/{id}                 partial update or 404
    DELETE /api/snippets/{id}                 delete → {} or 404

None of these handlers broadcast. A client that wants others to see its
change sends the matching event over /ws after the response arrives.
"""

import logging

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.snippet import (
    DeleteEnvelope,
    ErrorResponse,
    LanguageListEnvelope,
    SnippetCreate,
    SnippetEnvelope,
    SnippetListEnvelope,
    SnippetUpdate,
)
from app.services.snippet_service import snippet_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/snippets", tags=["Snippets"])

NOT_FOUND = {404: {"description": "Snippet not found", "model": ErrorResponse}}
BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}


@router.get(
    "",
    response_model=SnippetListEnvelope,
    response_model_exclude_none=True,
    responses=BAD_REQUEST,
    summary="List snippets",
    description=(
        "Case-insensitive substring `search` over name, language, description and tags; "
        "independent `language` filter; sort by createdAt, updatedAt, name or language."
    ),
)
async def list_snippets(
    response: Response,
    search: str | None = Query(default=None, description="Free-text search term"),
    language: str | None = Query(default=None, description="Language substring filter"),
    sort_by: str = Query(default="createdAt", alias="sortBy", description="Sort field"),
    order: str = Query(default="desc", description="'asc' or 'desc' (default)"),
    db: AsyncSession = Depends(get_db_session),
) -> SnippetListEnvelope:
    result = await snippet_service.list_snippets(
        db, search=search, language=language, sort_by=sort_by, order=order
    )
    response.headers["X-Total-Count"] = str(result.count)
    return result


@router.post(
    "",
    status_code=201,
    response_model=SnippetEnvelope,
    response_model_exclude_none=True,
    responses=BAD_REQUEST,
    summary="Create a snippet",
)
async def create_snippet(
    payload: SnippetCreate,
    db: AsyncSession = Depends(get_db_session),
) -> SnippetEnvelope:
    return await snippet_service.create_snippet(db, payload)


@router.get(
    "/languages/all",
    response_model=LanguageListEnvelope,
    response_model_exclude_none=True,
    summary="List distinct languages",
)
async def list_languages(
    db: AsyncSession = Depends(get_db_session),
) -> LanguageListEnvelope:
    return await snippet_service.list_languages(db)


@router.get(
    "/language/{language}",
    response_model=SnippetListEnvelope,
    response_model_exclude_none=True,
    summary="List snippets for a language",
)
async def list_by_language(
    language: str,
    db: AsyncSession = Depends(get_db_session),
) -> SnippetListEnvelope:
    return await snippet_service.list_by_language(db, language)


@router.get(
    "/{snippet_id}",
    response_model=SnippetEnvelope,
    response_model_exclude_none=True,
    responses=NOT_FOUND,
    summary="Get a snippet",
)
async def get_snippet(
    snippet_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> SnippetEnvelope:
    # Path id is a plain string: a malformed UUID is a 404, not a 422
    return await snippet_service.get_snippet(db, snippet_id)


@router.put(
    "/{snippet_id}",
    response_model=SnippetEnvelope,
    response_model_exclude_none=True,
    responses={**NOT_FOUND, **BAD_REQUEST},
    summary="Update a snippet (only supplied fields change)",
)
async def update_snippet(
    snippet_id: str,
    payload: SnippetUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> SnippetEnvelope:
    return await snippet_service.update_snippet(db, snippet_id, payload)


@router.delete(
    "/{snippet_id}",
    response_model=DeleteEnvelope,
    response_model_exclude_none=True,
    responses=NOT_FOUND,
    summary="Delete a snippet",
)
async def delete_snippet(
    snippet_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteEnvelope:
    return await snippet_service.delete_snippet(db, snippet_id)

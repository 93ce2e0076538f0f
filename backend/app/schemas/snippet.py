"""
SnipSync Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Input validation, automatic serialization, and OpenAPI doc generation.
How:   FastAPI uses these models to validate request bodies, serialize responses,
       and generate the OpenAPI documentation.

Wire format:
    Field names on the wire are the front-end's camelCase (`createdAt`,
    `updatedAt`); Python code uses snake_case via aliases.

    Every successful response is wrapped in the envelope
        {"success": true, "message"?: str, "count"?: int, "data": ...}
"""

import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SnippetCreate(BaseModel):
    """
    Body of POST /api/snippets.

    Every field is optional at the schema level so that a missing `name`
    is reported by SnippetService as a 400 validation error with our own
    message, not as FastAPI's generic 422.
    """
    name: Optional[str] = Field(default=None, description="Snippet name (required)")
    language: Optional[str] = Field(default=None, description="Language label, defaults to javascript")
    code: Optional[str] = Field(default=None, description="Snippet source text")
    description: Optional[str] = Field(default=None, description="Free-form description")
    tags: Optional[List[str]] = Field(default=None, description="Ordered tag list")


class SnippetUpdate(BaseModel):
    """
    Body of PUT /api/snippets/{id}: any subset of the create fields.

    Which fields were actually sent is read from `model_fields_set`, so a
    field left out of the JSON body is distinguishable from one sent as null.
    """
    name: Optional[str] = None
    language: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class SnippetResponse(BaseModel):
    """
    Full representation of a snippet, as returned by the API and as carried
    in `snippet-created` / `snippet-updated` real-time events.
    """
    id: uuid.UUID = Field(description="Store-assigned identifier")
    name: str
    language: str
    code: str
    description: str
    tags: List[str]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = {"populate_by_name": True}


class Envelope(BaseModel, Generic[T]):
    """
    Success envelope shared by every endpoint.

    Why `count` is optional: only list-shaped payloads carry it.
    """
    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None
    data: T


class SnippetEnvelope(Envelope[SnippetResponse]):
    pass


class SnippetListEnvelope(Envelope[List[SnippetResponse]]):
    pass


class LanguageListEnvelope(Envelope[List[str]]):
    pass


class DeleteEnvelope(Envelope[dict]):
    pass


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error envelope for all API errors.

    Example:
        {
            "success": false,
            "error": "not_found",
            "message": "Snippet not found",
            "request_id": "550e8400"
        }
    """
    success: bool = False
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /api/health for monitoring and load balancer checks.
    """
    success: bool
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    sessions: int = Field(description="Currently connected real-time sessions")
    uptime_seconds: float = Field(description="Seconds since service started")

"""
SnipSync Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return the structured JSON error envelope with the right status code.
Who:   Raised by the store, the services and middleware; caught by global handlers.

Exception Hierarchy:
    SnipSyncError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── DuplicateKeyError        → 400 Bad Request (unique constraint hit)
    ├── AuthTokenError           → 401 Unauthorized (reserved, no auth yet)
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    └── InternalError            → 500 Internal Server Error
        └── DatabaseError        → 500 Internal Server Error

Design Decision:
    Services raise instead of returning outcome objects: exceptions propagate
    naturally to the global handlers, so routes never check for failure.
"""

from typing import Any, Dict, Optional


class SnipSyncError(Exception):
    """
    Base exception for all SnipSync application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (returned as `details` only where the
                  handler decides it is safe)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SnipSyncError):
    """
    Raised when client input fails validation.

    When:    Missing/blank `name`, blank `language` on update, unknown sort field,
             malformed real-time frame.
    HTTP:    400 Bad Request

    Example response:
        {
            "success": false,
            "error": "validation_error",
            "message": "Please provide a snippet name",
            "details": {"field": "name"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class DuplicateKeyError(SnipSyncError):
    """
    Raised when a write violates a unique constraint in the store.

    HTTP:    400 Bad Request, naming the offending field.
    """

    def __init__(
        self,
        field: str = "id",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"Duplicate field value: {field}. Please use another value"
        ctx = context or {}
        ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthTokenError(SnipSyncError):
    """
    Reserved for token-based authentication.

    Nothing raises this yet; the handler exists so the error envelope is
    already defined when auth lands.
    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Invalid token. Please log in again",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SnipSyncError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/DELETE /api/snippets/{id} with an id that does not resolve
             (including ids that are not valid UUIDs).
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class RateLimitExceededError(SnipSyncError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests (+ Retry-After header)
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class InternalError(SnipSyncError):
    """
    Anything the client cannot fix.

    HTTP:    500 Internal Server Error
    Diagnostic context is attached to the response only outside production.
    """

    def __init__(
        self,
        message: str = "Server Error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(InternalError):
    """
    Raised when database operations fail unexpectedly.

    When:    Connection lost mid-query, deadlock, driver error.
    HTTP:    500 Internal Server Error

    Security Note:
        Detailed error info (SQL, constraint names) is logged server-side;
        the production response carries only the generic message.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)

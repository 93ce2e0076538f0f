# Middleware package init
"""
SnipSync Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every HTTP request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit FIRST: Reject abusive requests before any processing
    2. Request ID: Generate correlation ID for logging and error envelopes
    3. Logging: Log request details with the generated request ID

WebSocket connections pass straight through these (BaseHTTPMiddleware
only handles the "http" scope).
"""

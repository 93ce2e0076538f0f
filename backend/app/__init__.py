"""
SnipSync Backend — Application Package Initializer
====================================================

What: Marks the `app` directory as a Python package.
Who:  Used by Alembic, pytest, and uvicorn (`uvicorn app.main:app`).

Architecture Note:

    ┌─────────────────────────────────────┐
    │     Routes (HTTP + WebSocket)       │  ← transport concerns only
    ├──────────────────┬──────────────────┤
    │  Services        │  Realtime        │  ← commit path │ broadcast path
    ├──────────────────┴──────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The services column and the realtime column never call each other:
    a write is committed over HTTP, and the client separately announces it
    over the WebSocket.
"""

__version__ = "1.0.0"

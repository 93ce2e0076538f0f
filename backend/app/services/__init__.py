# Services package init
"""
SnipSync Backend — Services Layer
===================================

What:  Business logic between routes (HTTP) and the database (persistence).

Service Inventory:
    - SnippetStore:   durable CRUD, filtering, sorting, distinct languages
    - SnippetService: request validation, defaults, presence-aware updates

Real-time fan-out lives in app.realtime, not here.
"""

# Routes package init
"""
SnipSync Backend — API Routes Package
=======================================

What:  HTTP and WebSocket handlers that accept requests and return responses.

Route Inventory:
    - snippets.py: /api/snippets CRUD, search and language listing
    - realtime.py: /ws live-update channel
    - health.py:   GET /api/health, GET /

Design Principle:
    Routes stay THIN: extract request data, call a service, return the
    envelope. Business rules live in app.services; fan-out in app.realtime.
"""

"""
SnipSync Backend — Real-time Package
======================================

What:  In-process live-update channel over WebSockets.
How:   SessionRegistry tracks connected sessions and announces presence;
       BroadcastRelay fans client-emitted mutation events out to every other
       session. Neither touches the database.

Module Inventory:
    - events.py:   Wire names, RealtimeEvent, inbound frame parsing
    - registry.py: ClientSession + SessionRegistry (presence, user-count)
    - relay.py:    BroadcastRelay (fire-and-forget fan-out)

Delivery Guarantees:
    At-most-once, no replay. A session that is gone, or whose outbound queue
    is full, misses the event. Single process only.
"""

from app.realtime.events import EventKind, RealtimeEvent, parse_inbound
from app.realtime.registry import ClientSession, SessionRegistry
from app.realtime.relay import BroadcastRelay

__all__ = [
    "BroadcastRelay",
    "ClientSession",
    "EventKind",
    "RealtimeEvent",
    "SessionRegistry",
    "parse_inbound",
]

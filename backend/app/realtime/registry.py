"""
SnipSync Backend — Session Registry
=====================================

What:  The set of currently connected real-time sessions.
Why:   Replaces a module-global socket set with an object that is created per
       application instance and injected into the relay and the /ws route.
How:   A dict of session id → ClientSession guarded by an asyncio.Lock. Every
       register/unregister queues the new `user-count` to ALL sessions while
       still holding the lock, so every session sees counts in the order the
       membership actually changed.

Session State Machine:
    Disconnected ──register──▶ Connected ──unregister──▶ Disconnected
    One direction per connection; a reconnect is a new session with a new id.

Nothing is persisted: a restart empties the registry and clients re-register
when they reconnect.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from app.realtime.events import presence_message

logger = logging.getLogger(__name__)


def _new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class ClientSession:
    """
    One connected client.

    Attributes:
        id:     Opaque identifier assigned at connection time
        queue:  Bounded outbound queue drained by the connection's sender task
        closed: Set on unregister; a closed session accepts no more messages
    """

    id: str = field(default_factory=_new_session_id)
    queue: "asyncio.Queue[Dict[str, Any]]" = field(default_factory=asyncio.Queue, repr=False)
    closed: bool = False

    @classmethod
    def open(cls, queue_size: int = 0) -> "ClientSession":
        return cls(queue=asyncio.Queue(maxsize=queue_size))

    def deliver(self, message: Dict[str, Any]) -> bool:
        """
        Queue `message` without waiting. Returns False when it was dropped
        (session closed or queue full).
        """
        if self.closed:
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Outbound queue full for session %s; dropping %s", self.id, message.get("event"))
            return False
        return True


class SessionRegistry:
    """
    Connected-session membership plus presence announcements.

    Mutations (register/unregister) are serialized by the lock; reads are
    plain snapshots, which is safe on a single event loop.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ClientSession] = {}
        self._lock = asyncio.Lock()

    async def register(self, session: ClientSession) -> int:
        """Add `session`, announce the new count to everyone, return it."""
        async with self._lock:
            if session.id in self._sessions:
                raise ValueError(f"Session {session.id} is already registered")
            self._sessions[session.id] = session
            count = len(self._sessions)
            self._announce(count)
        logger.info("Session connected: %s (%d online)", session.id, count)
        return count

    async def unregister(self, session_id: str) -> int:
        """Remove a session (no-op if unknown), announce and return the new count."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            count = len(self._sessions)
            if session is None:
                return count
            session.closed = True
            self._announce(count)
        logger.info("Session disconnected: %s (%d online)", session_id, count)
        return count

    def count(self) -> int:
        return len(self._sessions)

    def sessions(self, exclude: Optional[str] = None) -> Tuple[ClientSession, ...]:
        """Snapshot of connected sessions, optionally without `exclude`."""
        return tuple(s for sid, s in self._sessions.items() if sid != exclude)

    def _announce(self, count: int) -> None:
        message = presence_message(count)
        for session in self._sessions.values():
            session.deliver(message)

"""
SnipSync Backend — Broadcast Relay
====================================

What:  Fans a client-emitted mutation event out to every OTHER connected session.
Why:   Live updates for everyone else looking at the collection.
How:   Non-blocking put onto each recipient's bounded outbound queue; each
       connection's sender task writes to its own socket, so one slow client
       never holds up delivery to the rest.

Guarantees (and non-guarantees):
    - Never delivered back to the originating session
    - At most once per recipient: no ack, no retry, no persistence
    - No ordering relative to the HTTP commit; clients are expected to emit
      only after they saw a successful response, but the relay cannot check
    - Never raises into the caller: a failed delivery is logged and skipped
"""

import logging

from app.realtime.events import RealtimeEvent
from app.realtime.registry import SessionRegistry

logger = logging.getLogger(__name__)


class BroadcastRelay:
    """Publishes RealtimeEvents through an injected SessionRegistry."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def publish(self, event: RealtimeEvent) -> int:
        """
        Queue `event` for every session except its origin.

        Returns:
            Number of sessions the event was queued for.
        """
        message = event.to_message()
        delivered = 0
        for session in self._registry.sessions(exclude=event.origin_session):
            try:
                if session.deliver(message):
                    delivered += 1
            except Exception:
                logger.warning(
                    "Could not queue %s for session %s", event.name, session.id, exc_info=True
                )
        logger.debug(
            "Relayed %s from %s to %d session(s)", event.name, event.origin_session, delivered
        )
        return delivered

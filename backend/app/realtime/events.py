"""
SnipSync Backend — Real-time Event Types
==========================================

What:  Event names on the wire and the transient RealtimeEvent value.
Why:   One table maps what a client sends to what other clients receive.

Frames are JSON text messages of the shape {"event": <name>, "data": <payload>}.

    inbound (client → server)      outbound (server → other clients)
    ─────────────────────────────  ─────────────────────────────────
    create-snippet  (record)       snippet-created  (record)
    update-snippet  (record)       snippet-updated  (record)
    delete-snippet  (id)           snippet-deleted  (id)
                                   user-count       (int, to everyone)
                                   error            (to the sender only)
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from app.exceptions import ValidationError


class EventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


INBOUND_EVENTS: Dict[str, EventKind] = {
    "create-snippet": EventKind.CREATED,
    "update-snippet": EventKind.UPDATED,
    "delete-snippet": EventKind.DELETED,
}

OUTBOUND_EVENTS: Dict[EventKind, str] = {
    EventKind.CREATED: "snippet-created",
    EventKind.UPDATED: "snippet-updated",
    EventKind.DELETED: "snippet-deleted",
}

PRESENCE_EVENT = "user-count"
ERROR_EVENT = "error"


@dataclass(frozen=True)
class RealtimeEvent:
    """
    A mutation notification emitted by one session.

    Attributes:
        kind:           Created, Updated or Deleted
        payload:        Full snippet record (Created/Updated) or bare id (Deleted)
        origin_session: Session that emitted it; excluded from fan-out
    """

    kind: EventKind
    payload: Any
    origin_session: str

    @property
    def name(self) -> str:
        return OUTBOUND_EVENTS[self.kind]

    def to_message(self) -> Dict[str, Any]:
        return {"event": self.name, "data": self.payload}


def presence_message(count: int) -> Dict[str, Any]:
    return {"event": PRESENCE_EVENT, "data": count}


def error_message(message: str) -> Dict[str, Any]:
    return {"event": ERROR_EVENT, "data": {"message": message}}


def _record_id(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise ValidationError(message="Event payload is missing a snippet id", field="id")


def parse_inbound(frame: Any, origin_session: str) -> RealtimeEvent:
    """
    Validate one inbound frame and turn it into a RealtimeEvent.

    `frame` is raw text or an already-decoded JSON object. The record
    payload of create/update is relayed as sent; it is not checked against
    the database (the client emits it after its own HTTP commit).

    Raises:
        ValidationError: not JSON, unknown event name, or malformed payload
    """
    if isinstance(frame, (str, bytes)):
        try:
            frame = json.loads(frame)
        except ValueError:
            raise ValidationError(message="Frame is not valid JSON")

    if not isinstance(frame, dict):
        raise ValidationError(message="Frame must be a JSON object")

    name = frame.get("event")
    kind = INBOUND_EVENTS.get(name) if isinstance(name, str) else None
    if kind is None:
        raise ValidationError(
            message=f"Unknown event '{name}'. Expected one of: {', '.join(INBOUND_EVENTS)}",
            field="event",
        )

    data = frame.get("data")
    if kind is EventKind.DELETED:
        # Accept {"id": ...} as well as the bare id
        if isinstance(data, dict):
            data = data.get("id")
        return RealtimeEvent(kind=kind, payload=_record_id(data), origin_session=origin_session)

    if not isinstance(data, dict):
        raise ValidationError(message=f"'{name}' expects a snippet record", field="data")
    _record_id(data.get("id"))
    return RealtimeEvent(kind=kind, payload=data, origin_session=origin_session)

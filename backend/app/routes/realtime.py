"""
SnipSync Backend — Real-time WebSocket Route
==============================================

What:  The /ws endpoint: one WebSocket per connected front-end tab.
How:   On connect, a ClientSession is registered (everyone gets user-count)
       and a sender task starts draining the session's outbound queue to the
       socket. Inbound frames are parsed and handed to the BroadcastRelay.
       On disconnect the session is unregistered (everyone left gets
       user-count) and the sender task is cancelled.

Connection Lifecycle:
    accept → register → [receive frame → parse → relay.publish]* → unregister

The registry and relay are read from `app.state`, where create_app() puts
one instance of each per application.
"""

import asyncio
import logging
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.config import settings
from app.exceptions import ValidationError
from app.realtime.events import error_message, parse_inbound
from app.realtime.registry import ClientSession, SessionRegistry
from app.realtime.relay import BroadcastRelay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


async def _drain_outbound(session: ClientSession, websocket: WebSocket) -> None:
    """Write queued messages to the socket until it fails or the task is cancelled."""
    while True:
        message = await session.queue.get()
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            # Peer is gone; the receive loop will notice and unregister
            logger.debug("Send to session %s failed: %s", session.id, e)
            return


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    registry: SessionRegistry = websocket.app.state.session_registry
    relay: BroadcastRelay = websocket.app.state.broadcast_relay

    await websocket.accept()
    session = ClientSession.open(settings.realtime_queue_size)
    sender = asyncio.create_task(_drain_outbound(session, websocket))
    await registry.register(session)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # Text or binary; parse_inbound decodes either
            frame = message.get("text")
            if frame is None:
                frame = message.get("bytes")
            try:
                event = parse_inbound(frame, origin_session=session.id)
            except ValidationError as e:
                logger.warning("Rejected frame from session %s: %s", session.id, e.message)
                session.deliver(error_message(e.message))
                continue
            relay.publish(event)
    except WebSocketDisconnect:
        pass
    finally:
        await registry.unregister(session.id)
        sender.cancel()
        with suppress(asyncio.CancelledError):
            await sender

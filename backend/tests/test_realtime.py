"""
SnipSync Backend — Real-time Channel Tests
============================================

What:  Tests for SessionRegistry, BroadcastRelay, inbound frame parsing and
       the /ws endpoint end to end.
Why:   Presence counts and "everyone but the sender" fan-out are the whole
       point of the real-time channel.
How:   Unit tests drive the registry/relay directly and read session queues.
       The endpoint test uses Starlette's TestClient as a context manager so
       every socket shares one event loop with the app.

What we test:
    ✅ user-count goes to all sessions on connect and disconnect
    ✅ Events never return to the origin session
    ✅ One failing recipient does not stop delivery to the others
    ✅ Full or closed queues drop messages instead of blocking
    ✅ Malformed frames get an error reply, only to the sender
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.exceptions import ValidationError
from app.main import create_app
from app.realtime import (
    BroadcastRelay,
    ClientSession,
    EventKind,
    RealtimeEvent,
    SessionRegistry,
    parse_inbound,
)


def drain(session: ClientSession) -> list:
    messages = []
    while not session.queue.empty():
        messages.append(session.queue.get_nowait())
    return messages


class TestSessionRegistry:

    @pytest.mark.asyncio
    async def test_register_announces_count_to_everyone(self):
        registry = SessionRegistry()
        first, second = ClientSession.open(), ClientSession.open()

        assert await registry.register(first) == 1
        assert await registry.register(second) == 2

        assert drain(first) == [
            {"event": "user-count", "data": 1},
            {"event": "user-count", "data": 2},
        ]
        assert drain(second) == [{"event": "user-count", "data": 2}]

    @pytest.mark.asyncio
    async def test_unregister_announces_to_remaining(self):
        registry = SessionRegistry()
        first, second = ClientSession.open(), ClientSession.open()
        await registry.register(first)
        await registry.register(second)
        drain(first)
        drain(second)

        assert await registry.unregister(second.id) == 1

        assert drain(first) == [{"event": "user-count", "data": 1}]
        assert second.closed is True
        assert drain(second) == []

    @pytest.mark.asyncio
    async def test_unregister_unknown_is_noop(self):
        registry = SessionRegistry()
        session = ClientSession.open()
        await registry.register(session)
        drain(session)

        assert await registry.unregister("nobody") == 1
        assert drain(session) == []

    @pytest.mark.asyncio
    async def test_duplicate_register_rejected(self):
        registry = SessionRegistry()
        session = ClientSession.open()
        await registry.register(session)
        with pytest.raises(ValueError):
            await registry.register(session)
        assert registry.count() == 1

    def test_sessions_snapshot_excludes(self):
        registry = SessionRegistry()
        a, b = ClientSession.open(), ClientSession.open()
        registry._sessions = {a.id: a, b.id: b}
        assert registry.sessions(exclude=a.id) == (b,)


class TestClientSession:

    def test_full_queue_drops(self):
        session = ClientSession.open(queue_size=1)
        assert session.deliver({"event": "x"}) is True
        assert session.deliver({"event": "y"}) is False
        assert drain(session) == [{"event": "x"}]

    def test_closed_session_drops(self):
        session = ClientSession.open()
        session.closed = True
        assert session.deliver({"event": "x"}) is False


class TestBroadcastRelay:

    def _registry_with(self, *sessions):
        registry = SessionRegistry()
        registry._sessions = {s.id: s for s in sessions}
        return registry

    def test_publish_skips_origin(self):
        origin, other, third = ClientSession.open(), ClientSession.open(), ClientSession.open()
        relay = BroadcastRelay(self._registry_with(origin, other, third))

        delivered = relay.publish(
            RealtimeEvent(kind=EventKind.DELETED, payload="abc", origin_session=origin.id)
        )

        assert delivered == 2
        assert drain(origin) == []
        assert drain(other) == [{"event": "snippet-deleted", "data": "abc"}]
        assert drain(third) == [{"event": "snippet-deleted", "data": "abc"}]

    def test_failing_recipient_does_not_block_others(self):
        origin, bad, good = ClientSession.open(), ClientSession.open(), ClientSession.open()
        bad.deliver = MagicMock(side_effect=RuntimeError("boom"))
        relay = BroadcastRelay(self._registry_with(origin, bad, good))

        delivered = relay.publish(
            RealtimeEvent(kind=EventKind.CREATED, payload={"id": "1"}, origin_session=origin.id)
        )

        assert delivered == 1
        assert drain(good) == [{"event": "snippet-created", "data": {"id": "1"}}]

    def test_publish_with_no_listeners(self):
        origin = ClientSession.open()
        relay = BroadcastRelay(self._registry_with(origin))
        event = RealtimeEvent(kind=EventKind.UPDATED, payload={"id": "1"}, origin_session=origin.id)
        assert relay.publish(event) == 0


class TestParseInbound:

    def test_create_from_text(self):
        event = parse_inbound(
            '{"event": "create-snippet", "data": {"id": "abc", "name": "n"}}', origin_session="s1"
        )
        assert event.kind is EventKind.CREATED
        assert event.name == "snippet-created"
        assert event.payload == {"id": "abc", "name": "n"}
        assert event.origin_session == "s1"

    def test_update_from_dict(self):
        event = parse_inbound({"event": "update-snippet", "data": {"id": "abc"}}, "s1")
        assert event.to_message() == {"event": "snippet-updated", "data": {"id": "abc"}}

    @pytest.mark.parametrize("data", ["abc", {"id": "abc"}])
    def test_delete_accepts_bare_or_wrapped_id(self, data):
        event = parse_inbound({"event": "delete-snippet", "data": data}, "s1")
        assert event.payload == "abc"

    def test_invalid_json(self):
        with pytest.raises(ValidationError):
            parse_inbound("{not json", "s1")

    def test_non_object_frame(self):
        with pytest.raises(ValidationError):
            parse_inbound("[1, 2]", "s1")

    def test_unknown_event(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_inbound({"event": "snippet-created", "data": {"id": "x"}}, "s1")
        assert exc_info.value.field == "event"

    def test_record_without_id(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_inbound({"event": "update-snippet", "data": {"name": "x"}}, "s1")
        assert exc_info.value.field == "id"

    def test_record_must_be_object(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_inbound({"event": "create-snippet", "data": "abc"}, "s1")
        assert exc_info.value.field == "data"


class TestRealtimeEndpoint:
    """End-to-end over /ws with two clients."""

    def test_presence_and_fan_out(self):
        app = create_app()
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as c1:
                assert c1.receive_json() == {"event": "user-count", "data": 1}

                with client.websocket_connect("/ws") as c2:
                    assert c1.receive_json() == {"event": "user-count", "data": 2}
                    assert c2.receive_json() == {"event": "user-count", "data": 2}

                    c1.send_json({"event": "delete-snippet", "data": "abc"})
                    assert c2.receive_json() == {"event": "snippet-deleted", "data": "abc"}

                    record = {"id": "def", "name": "new"}
                    c2.send_json({"event": "create-snippet", "data": record})
                    # c1 never saw its own delete: the next thing it gets is c2's create
                    assert c1.receive_json() == {"event": "snippet-created", "data": record}

                    # c2 got the delete exactly once: the next thing queued for it is this update
                    c1.send_json({"event": "update-snippet", "data": record})
                    assert c2.receive_json() == {"event": "snippet-updated", "data": record}

                assert c1.receive_json() == {"event": "user-count", "data": 1}

    def test_malformed_frame_gets_error_reply(self):
        app = create_app()
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                assert ws.receive_json()["event"] == "user-count"

                ws.send_text("not json")
                reply = ws.receive_json()
                assert reply["event"] == "error"
                assert reply["data"]["message"] == "Frame is not valid JSON"

                # Still connected after the error
                ws.send_json({"event": "bogus"})
                assert ws.receive_json()["event"] == "error"

    def test_binary_frames_are_accepted(self):
        app = create_app()
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as c1:
                assert c1.receive_json()["event"] == "user-count"
                with client.websocket_connect("/ws") as c2:
                    c1.receive_json()
                    c2.receive_json()

                    c1.send_bytes(b'{"event": "delete-snippet", "data": "abc"}')
                    assert c2.receive_json() == {"event": "snippet-deleted", "data": "abc"}

                    c1.send_bytes(b"\xff\xfe")
                    reply = c1.receive_json()
                    assert reply["event"] == "error"

                    # Connection survives the bad frame
                    c1.send_json({"event": "delete-snippet", "data": "def"})
                    assert c2.receive_json() == {"event": "snippet-deleted", "data": "def"}

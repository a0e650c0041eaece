"""
Unit tests for the EventHub and StreamConnection.

Tests registration, fan-out, pruning of dead and expired subscribers,
the heartbeat, and SSE framing.
"""

import asyncio
import json

import pytest

from orderdesk.core.exceptions import AuthError
from orderdesk.services.events import (
    ConnectionClosed,
    StreamConnection,
    format_sse,
)

TTL_SECONDS = 12 * 3600


@pytest.mark.asyncio
class TestRegister:

    async def test_register_sends_ready_handshake(self, hub, store, admin, make_connection):
        connection = make_connection()

        await hub.register(connection, store.issue(admin))

        assert hub.subscriber_count == 1
        assert connection.names == ["ready"]
        payload = connection.events[0][1]
        assert payload["ok"] is True
        assert isinstance(payload["now"], int)

    async def test_invalid_token_is_rejected(self, hub, make_connection):
        connection = make_connection()

        with pytest.raises(AuthError):
            await hub.register(connection, "not-a-token")

        assert hub.subscriber_count == 0
        assert connection.events == []

    async def test_expired_token_is_rejected(self, hub, store, admin, clock, make_connection):
        token = store.issue(admin)
        clock.advance(TTL_SECONDS)

        with pytest.raises(AuthError):
            await hub.register(make_connection(), token)

        assert hub.subscriber_count == 0

    async def test_unregister_is_idempotent(self, hub, store, admin, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))

        hub.unregister(connection)
        hub.unregister(connection)

        assert hub.subscriber_count == 0
        assert not hub.is_registered(connection)


@pytest.mark.asyncio
class TestBroadcast:

    async def test_fan_out_to_every_subscriber(self, hub, store, admin, make_connection):
        connections = [make_connection() for _ in range(3)]
        for connection in connections:
            await hub.register(connection, store.issue(admin))

        delivered = await hub.broadcast("order", {"type": "order_created", "order": {"id": 1}})

        assert delivered == 3
        for connection in connections:
            assert connection.events[-1] == ("order", {"type": "order_created", "order": {"id": 1}})

    async def test_events_arrive_in_broadcast_order(self, hub, store, admin, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))

        await asyncio.gather(*(hub.broadcast("order", {"n": n}) for n in range(5)))

        assert [p["n"] for _, p in connection.events[1:]] == [0, 1, 2, 3, 4]

    async def test_failed_send_prunes_only_that_subscriber(self, hub, store, admin, make_connection):
        healthy = make_connection()
        broken = make_connection()
        await hub.register(healthy, store.issue(admin))
        await hub.register(broken, store.issue(admin))
        broken.fail = True

        delivered = await hub.broadcast("order", {"id": 1})

        assert delivered == 1
        assert broken.closed is True
        assert not hub.is_registered(broken)
        assert hub.is_registered(healthy)
        assert healthy.events[-1] == ("order", {"id": 1})

    async def test_expired_subscriber_is_dropped_without_event(
        self, hub, store, admin, clock, make_connection
    ):
        stale = make_connection()
        await hub.register(stale, store.issue(admin))
        clock.advance(TTL_SECONDS / 2)
        fresh = make_connection()
        await hub.register(fresh, store.issue(admin))
        clock.advance(TTL_SECONDS / 2)

        delivered = await hub.broadcast("order", {"id": 2})

        assert delivered == 1
        assert stale.names == ["ready"]
        assert stale.closed is True
        assert not hub.is_registered(stale)
        assert fresh.names == ["ready", "order"]

        await hub.broadcast("order", {"id": 3})
        assert stale.names == ["ready"]

    async def test_revoked_session_is_dropped(self, hub, store, admin, make_connection):
        connection = make_connection()
        token = store.issue(admin)
        await hub.register(connection, token)
        store.revoke(token)

        assert await hub.broadcast("order", {}) == 0
        assert hub.subscriber_count == 0

    async def test_broadcast_with_no_subscribers(self, hub):
        assert await hub.broadcast("order", {"id": 1}) == 0

    async def test_publish_order_wraps_payload(self, hub, store, admin, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))

        await hub.publish_order("order_updated", {"id": 5})

        assert connection.events[-1] == ("order", {"type": "order_updated", "order": {"id": 5}})


@pytest.mark.asyncio
class TestHeartbeat:

    async def test_heartbeat_pings_live_subscribers(self, hub, store, admin, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))

        assert await hub.heartbeat() == 1
        name, payload = connection.events[-1]
        assert name == "ping"
        assert isinstance(payload["now"], int)

    async def test_heartbeat_sweeps_and_prunes(self, hub, store, admin, clock, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))
        store.issue(admin)
        clock.advance(TTL_SECONDS)

        assert await hub.heartbeat() == 0
        assert len(store) == 0
        assert hub.subscriber_count == 0
        assert connection.closed is True
        assert connection.names == ["ready"]

    async def test_heartbeat_loop_runs_until_cancelled(self, hub, store, admin, make_connection):
        connection = make_connection()
        await hub.register(connection, store.issue(admin))

        task = asyncio.create_task(hub.heartbeat_loop(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert connection.names.count("ping") >= 1

    async def test_shutdown_closes_everything(self, hub, store, admin, make_connection):
        connections = [make_connection(), make_connection()]
        for connection in connections:
            await hub.register(connection, store.issue(admin))

        hub.shutdown()

        assert hub.subscriber_count == 0
        assert all(c.closed for c in connections)


def test_format_sse_frame():
    frame = format_sse("order", {"type": "order_created", "order": {"id": 1}})

    assert frame.startswith("event: order\ndata: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame.split("data: ", 1)[1]) == {"type": "order_created", "order": {"id": 1}}


def test_format_sse_without_event_name():
    assert format_sse(None, {"a": 1}) == 'data: {"a": 1}\n\n'


@pytest.mark.asyncio
class TestStreamConnection:

    async def test_frames_until_closed(self):
        connection = StreamConnection(max_queue=10)
        await connection.send("ready", {"ok": True})
        await connection.send("ping", {"now": 1})
        connection.close()

        frames = [frame async for frame in connection.frames()]

        assert [f.split("\n", 1)[0] for f in frames] == ["event: ready", "event: ping"]

    async def test_full_queue_fails_send(self):
        connection = StreamConnection(max_queue=2)
        await connection.send("ping", {})
        await connection.send("ping", {})

        with pytest.raises(ConnectionClosed):
            await connection.send("ping", {})

    async def test_close_on_full_queue_still_ends_stream(self):
        connection = StreamConnection(max_queue=1)
        await connection.send("ping", {})
        connection.close()

        assert [frame async for frame in connection.frames()] == []

    async def test_send_after_close_fails(self):
        connection = StreamConnection()
        connection.close()

        with pytest.raises(ConnectionClosed):
            await connection.send("ping", {})

    async def test_slow_subscriber_is_pruned(self, hub, store, admin):
        connection = StreamConnection(max_queue=2)
        await hub.register(connection, store.issue(admin))
        await hub.broadcast("ping", {})

        await hub.broadcast("ping", {})

        assert not hub.is_registered(connection)
        assert connection.closed is True

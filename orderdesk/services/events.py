"""
Live Order Event Hub

Fans order lifecycle events out to admin dashboards connected over
Server-Sent Events.

Every subscriber is tied to the bearer token it connected with. Before each
delivery the token is checked again, so a stream dies on the first broadcast
or heartbeat after its session expires. A subscriber whose connection fails
is dropped without affecting anyone else.

Events:
    ready   sent once to a new subscriber          {ok, now}
    order   order created or status changed       {type, order}
    ping    heartbeat                              {now}
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, AsyncIterator, Optional

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import AuthError
from orderdesk.services.sessions import SessionStore, get_session_store

logger = logging.getLogger(__name__)

READY_EVENT = "ready"
ORDER_EVENT = "order"
PING_EVENT = "ping"


def now_ms() -> int:
    """Current time as Unix epoch milliseconds."""
    return int(time.time() * 1000)


def format_sse(event: Optional[str], payload: Any) -> str:
    """Encode one Server-Sent Events frame."""
    frame = f"event: {event}\n" if event else ""
    return frame + f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class ConnectionClosed(Exception):
    """Raised when writing to a connection that can no longer accept data."""


class StreamConnection:
    """
    One SSE client as seen by the hub.

    ``send`` enqueues an encoded frame; the HTTP response drains the queue
    through ``frames()``. The queue is bounded: a client too slow to keep up
    fails the send and gets pruned instead of buffering without limit.
    """

    def __init__(self, max_queue: int = 100):
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=max_queue)
        self.closed = False

    async def send(self, event: str, payload: Any) -> None:
        if self.closed:
            raise ConnectionClosed("connection already closed")
        try:
            self._queue.put_nowait(format_sse(event, payload))
        except asyncio.QueueFull:
            raise ConnectionClosed("client is not reading")

    def close(self) -> None:
        """Stop the stream after already-queued frames are flushed."""
        if self.closed:
            return
        self.closed = True
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


@dataclass(eq=False)
class Subscriber:
    connection: StreamConnection
    token: str


class EventHub:
    """Process-wide registry of live stream subscribers."""

    def __init__(self, session_store: SessionStore):
        self.session_store = session_store
        self._subscribers: list[Subscriber] = []
        self._broadcast_lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def is_registered(self, connection: StreamConnection) -> bool:
        return any(s.connection is connection for s in self._subscribers)

    async def register(self, connection: StreamConnection, token: str) -> Subscriber:
        """
        Add an authenticated connection to the live set.

        The ``ready`` handshake is sent before the subscriber joins, so it is
        always the first frame the client sees.

        Raises:
            AuthError: token is missing, unknown or expired
        """
        session = self.session_store.validate(token)
        if session is None:
            raise AuthError()

        await connection.send(READY_EVENT, {"ok": True, "now": now_ms()})

        subscriber = Subscriber(connection=connection, token=token)
        self._subscribers.append(subscriber)
        logger.info(
            f"Stream subscriber registered for {session.username} "
            f"({len(self._subscribers)} live)"
        )
        return subscriber

    def unregister(self, connection: StreamConnection) -> None:
        """Remove a subscriber after the client disconnected."""
        before = len(self._subscribers)
        self._subscribers = [s for s in self._subscribers if s.connection is not connection]
        if len(self._subscribers) < before:
            logger.info(f"Stream subscriber disconnected ({len(self._subscribers)} live)")

    def _drop(self, subscriber: Subscriber, reason: str) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
        subscriber.connection.close()
        logger.info(f"Stream subscriber dropped: {reason} ({len(self._subscribers)} live)")

    async def broadcast(self, event: str, payload: Any) -> int:
        """
        Deliver one event to every live subscriber.

        Subscribers with an invalid session or a failing connection are
        removed and closed. Returns the number of successful deliveries.
        """
        async with self._broadcast_lock:
            delivered = 0
            for subscriber in list(self._subscribers):
                if self.session_store.validate(subscriber.token) is None:
                    self._drop(subscriber, "session expired")
                    continue

                try:
                    await subscriber.connection.send(event, payload)
                except Exception as e:
                    self._drop(subscriber, f"send failed ({e})")
                    continue

                delivered += 1

            logger.debug(f"Broadcast '{event}' delivered to {delivered} subscriber(s)")
            return delivered

    async def publish_order(self, change: str, order: dict[str, Any]) -> int:
        """Broadcast an ``order`` event, e.g. change="order_created"."""
        return await self.broadcast(ORDER_EVENT, {"type": change, "order": order})

    async def heartbeat(self) -> int:
        """Sweep expired sessions, then ping every stream."""
        self.session_store.sweep()
        return await self.broadcast(PING_EVENT, {"now": now_ms()})

    async def heartbeat_loop(self, interval: float) -> None:
        """Run ``heartbeat`` every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.heartbeat()
            except Exception:
                logger.exception("Heartbeat failed")

    def shutdown(self) -> None:
        """Close every stream and empty the live set."""
        for subscriber in self._subscribers:
            subscriber.connection.close()
        self._subscribers = []


@lru_cache()
def get_event_hub() -> EventHub:
    """Process-wide event hub bound to the shared session store."""
    return EventHub(get_session_store())


def new_connection() -> StreamConnection:
    return StreamConnection(max_queue=get_settings().subscriber_queue_size)

"""
WebSocket connection manager and notification gateway for real-time events.

Observers join a per-baby topic; services publish session and safety events
to that topic. Delivery is best-effort and at-most-once: an observer that is
not connected when an event is published simply misses it.
"""

from typing import Any, Coroutine, Dict, List, Protocol, Set, Tuple, TypeVar
import asyncio
import json
import logging

import anyio
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Run a coroutine from sync code.

    - In FastAPI sync endpoints, uses anyio.from_thread.run to execute on the main loop.
    - Falls back to anyio.run when no AnyIO worker thread is available (CLI/tests).
    - Raises if called from an async context in the same thread (use await instead).
    """

    async def _runner() -> T:
        if timeout is not None:
            with anyio.fail_after(timeout):
                return await coro
        return await coro

    try:
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return anyio.run(_runner)
        coro.close()
        raise RuntimeError("run_async called from async context; use await instead")


class ConnectionManager:
    """Manages WebSocket subscriptions per topic (one topic per baby)."""

    def __init__(self):
        # topic -> set of active WebSocket connections
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, websocket: WebSocket, accept: bool = True):
        """Accept (optionally) and register a connection on a topic."""
        if accept:
            await websocket.accept()
        async with self._lock:
            self._topics.setdefault(topic, set()).add(websocket)

    async def unsubscribe(self, topic: str, websocket: WebSocket):
        """Remove a connection from a topic."""
        async with self._lock:
            if topic in self._topics:
                self._topics[topic].discard(websocket)
                if not self._topics[topic]:
                    del self._topics[topic]

    async def broadcast(self, topic: str, message: dict) -> int:
        """Send a message to every connection on a topic. Returns deliveries."""
        async with self._lock:
            connections = self._topics.get(topic, set()).copy()

        if not connections:
            return 0

        data = json.dumps(message)
        closed = []
        delivered = 0

        for ws in connections:
            try:
                await ws.send_text(data)
                delivered += 1
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        # Clean up closed connections
        if closed:
            async with self._lock:
                if topic in self._topics:
                    for ws in closed:
                        self._topics[topic].discard(ws)
                    if not self._topics[topic]:
                        del self._topics[topic]

        return delivered

    def subscriber_count(self, topic: str) -> int:
        """Get the number of active connections on a topic."""
        return len(self._topics.get(topic, set()))

    def get_total_connections(self) -> int:
        """Get total number of active connections across all topics."""
        return sum(len(conns) for conns in self._topics.values())


class NotificationGateway:
    """
    Synchronous publish facade over the connection manager.

    Routers flush committed events into publish() from request threads; it
    never raises and gives up on a broadcast after the configured timeout.
    """

    def __init__(self, connections: ConnectionManager, timeout: float | None = None):
        self.connections = connections
        self.timeout = timeout

    def publish(self, topic: Any, event: str, payload: dict) -> None:
        topic = str(topic)
        if not self.connections.subscriber_count(topic):
            return

        message = {"type": event, "data": jsonable_encoder(payload)}
        try:
            delivered = run_async(
                self.connections.broadcast(topic, message), timeout=self.timeout
            )
            logger.debug("Published %s to %s (%d observers)", event, topic, delivered)
        except Exception:
            logger.warning("Failed to publish %s to topic %s", event, topic, exc_info=True)


class EventPublisher(Protocol):
    def publish(self, topic: Any, event: str, payload: dict) -> None: ...


class EventOutbox:
    """
    Holds events raised during a request until its write is committed.

    Routers hand an outbox to the services, commit, then call flush().
    Nothing is delivered for a write that fails or is rolled back.
    """

    def __init__(self, gateway: EventPublisher):
        self.gateway = gateway
        self._pending: List[Tuple[Any, str, dict]] = []

    def publish(self, topic: Any, event: str, payload: dict) -> None:
        self._pending.append((topic, event, payload))

    def flush(self) -> None:
        pending, self._pending = self._pending, []
        for topic, event, payload in pending:
            self.gateway.publish(topic, event, payload)


# Singleton instances
manager = ConnectionManager()
gateway = NotificationGateway(manager, timeout=settings.WS_PUBLISH_TIMEOUT_SECONDS)

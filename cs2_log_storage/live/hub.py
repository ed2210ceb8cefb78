"""
Subscription-based broadcast hub for live log viewers.

Viewers subscribe to exact (event_type, topic) pairs. Publishing never
waits on a viewer: each connection has a bounded outbound queue and a
full queue drops the message for that connection only.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

Subscription = tuple[str, str]


@dataclass(eq=False)
class ViewerConnection:
    """A connected live viewer."""

    client_id: str
    subscriptions: set[Subscription] = field(default_factory=set)
    connected_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    queue_size: int = DEFAULT_QUEUE_SIZE
    dropped: int = 0
    closed: bool = False

    # Queue for outgoing messages
    message_queue: asyncio.Queue[dict[str, Any]] = field(init=False)

    def __post_init__(self) -> None:
        self.message_queue = asyncio.Queue(maxsize=self.queue_size)

    def offer(self, message: dict[str, Any]) -> bool:
        """Queue a message without waiting; False if it was dropped."""
        if self.closed:
            return False
        try:
            self.message_queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True


class BroadcastHub:
    """Registry of viewer connections and their subscriptions.

    Created once per service and closed at shutdown. All registry and
    index changes happen under one hub-wide lock.

    Example:
        >>> hub = BroadcastHub()
        >>> conn = await hub.connect()
        >>> await hub.subscribe(conn, "new_log", "*")
        >>> await hub.publish("new_log", "*", summary)
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._clients: dict[str, ViewerConnection] = {}
        self._index: dict[Subscription, set[ViewerConnection]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    @property
    def subscription_count(self) -> int:
        """Number of (event_type, topic) pairs with at least one subscriber."""
        return len(self._index)

    async def connect(self) -> ViewerConnection:
        """Register a new viewer with no subscriptions."""
        async with self._lock:
            conn = ViewerConnection(client_id=str(uuid.uuid4()), queue_size=self.queue_size)
            self._clients[conn.client_id] = conn
            logger.info(f"Viewer connected: {conn.client_id}")
            return conn

    async def disconnect(self, conn: ViewerConnection) -> None:
        """Remove a viewer and all of its subscriptions."""
        async with self._lock:
            self._remove(conn)

    def _remove(self, conn: ViewerConnection) -> None:
        if self._clients.pop(conn.client_id, None) is None:
            return
        for key in conn.subscriptions:
            subscribers = self._index.get(key)
            if subscribers is None:
                continue
            subscribers.discard(conn)
            if not subscribers:
                del self._index[key]
        conn.subscriptions.clear()
        conn.closed = True
        logger.info(f"Viewer disconnected: {conn.client_id} (dropped={conn.dropped})")

    async def subscribe(self, conn: ViewerConnection, event_type: str, topic: str) -> None:
        """Subscribe a viewer to (event_type, topic). Repeating is a no-op."""
        async with self._lock:
            if conn.client_id not in self._clients:
                return
            key = (event_type, topic)
            self._index.setdefault(key, set()).add(conn)
            conn.subscriptions.add(key)

    async def unsubscribe(self, conn: ViewerConnection, event_type: str, topic: str) -> None:
        """Drop a subscription. Unknown subscriptions are ignored."""
        async with self._lock:
            key = (event_type, topic)
            subscribers = self._index.get(key)
            if subscribers is not None:
                subscribers.discard(conn)
                if not subscribers:
                    del self._index[key]
            conn.subscriptions.discard(key)

    async def publish(self, event_type: str, topic: str, payload: Any) -> int:
        """Queue an event for every viewer subscribed to exactly (event_type, topic).

        Returns:
            Number of viewers the event was queued for
        """
        message = {"type": event_type, "token": topic, "payload": payload}
        delivered = 0
        async with self._lock:
            for conn in self._index.get((event_type, topic), ()):
                if conn.offer(message):
                    delivered += 1
                else:
                    logger.debug(f"Dropped {event_type} for slow viewer {conn.client_id}")
        return delivered

    async def close(self) -> None:
        """Disconnect every viewer."""
        async with self._lock:
            for conn in list(self._clients.values()):
                self._remove(conn)

    def get_connected_clients(self) -> list[dict[str, Any]]:
        """Get list of connected viewers.

        Returns:
            List of viewer info dictionaries
        """
        return [
            {
                "client_id": conn.client_id,
                "subscriptions": [list(key) for key in sorted(conn.subscriptions)],
                "connected_at": conn.connected_at,
                "dropped": conn.dropped,
            }
            for conn in self._clients.values()
        ]

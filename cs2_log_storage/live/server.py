"""
Live view connection handling.

Runs one viewer connection over transport-agnostic callables so the
same loop serves the FastAPI WebSocket endpoint and in-process tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .hub import BroadcastHub, ViewerConnection

logger = logging.getLogger(__name__)

ReceiveFn = Callable[[], Awaitable[str | None]]
SendFn = Callable[[str], Awaitable[Any]]


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode_event(event: dict[str, Any]) -> str:
    """Serialize an outbound event; byte payloads are sent as text."""
    return json.dumps(event, default=_json_default)


def parse_control_message(raw: str) -> dict[str, Any] | None:
    """Parse a viewer control frame, or None if it is malformed."""
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        return None
    return message


class LiveViewServer:
    """Serves live viewer connections on top of a BroadcastHub.

    Example with FastAPI:
        >>> server = LiveViewServer(hub)
        >>> @app.websocket("/ws")
        >>> async def ws(websocket: WebSocket):
        >>>     await websocket.accept()
        >>>     await server.handle_connection(receive, websocket.send_text)
    """

    def __init__(self, hub: BroadcastHub) -> None:
        self.hub = hub

    async def handle_connection(self, receive: ReceiveFn, send: SendFn) -> None:
        """Run a viewer connection until the transport closes.

        Args:
            receive: Returns the next control frame, or None once closed
            send: Writes one serialized event to the viewer
        """
        conn = await self.hub.connect()

        try:
            await send(encode_event({"type": "connected", "client_id": conn.client_id}))

            # Whichever loop ends first stops the other; the group then
            # exits without raising.
            async with asyncio.TaskGroup() as group:
                receiver = group.create_task(self._receive_loop(conn, receive))
                sender = group.create_task(self._send_loop(conn, send))
                receiver.add_done_callback(lambda _: sender.cancel())
                sender.add_done_callback(lambda _: receiver.cancel())
        finally:
            await self.hub.disconnect(conn)

    async def _receive_loop(self, conn: ViewerConnection, receive: ReceiveFn) -> None:
        while True:
            try:
                raw = await receive()
            except Exception as e:
                logger.info(f"Viewer {conn.client_id} receive failed: {e!r}")
                return
            if raw is None:
                return
            await self.handle_control_message(conn, raw)

    async def _send_loop(self, conn: ViewerConnection, send: SendFn) -> None:
        while True:
            event = await conn.message_queue.get()
            try:
                await send(encode_event(event))
            except Exception as e:
                logger.info(f"Viewer {conn.client_id} send failed: {e!r}")
                return

    async def handle_control_message(self, conn: ViewerConnection, raw: str) -> None:
        """Apply one control frame from a viewer.

        Malformed frames are ignored; the connection stays open.
        """
        message = parse_control_message(raw)
        if message is None:
            logger.debug(f"Ignoring malformed control message from {conn.client_id}")
            return

        msg_type = message["type"]

        if msg_type in ("subscribe", "unsubscribe"):
            event_type = message.get("event")
            topic = message.get("token")
            if not isinstance(event_type, str) or not isinstance(topic, str):
                logger.debug(f"Ignoring {msg_type} without event/token from {conn.client_id}")
                return
            if msg_type == "subscribe":
                await self.hub.subscribe(conn, event_type, topic)
            else:
                await self.hub.unsubscribe(conn, event_type, topic)

        elif msg_type == "ping":
            conn.offer({"type": "pong"})

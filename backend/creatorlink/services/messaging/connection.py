# backend/creatorlink/services/messaging/connection.py
"""
Connection handles for realtime delivery.

A handle is what the registry stores and the router delivers to. deliver()
never blocks: WebSocketConnection enqueues onto a bounded queue drained by
its own writer task, and drops the event when the queue is full.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional, Protocol

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from .events import build_heartbeat_event

logger = logging.getLogger(__name__)

_connection_ids = itertools.count(1)


def next_connection_id() -> str:
    return f"conn-{next(_connection_ids)}"


class ConnectionHandle(Protocol):
    """Anything the router can push events to."""

    identity_id: str
    connection_id: str

    def deliver(self, event: Dict[str, Any]) -> bool:
        """Queue an event for the client; return False when it was dropped."""
        ...


async def safe_send_json(websocket: WebSocket, data: Dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("[REALTIME] Failed to send websocket message: %s", e)
        return False


class WebSocketConnection:
    """
    A live WebSocket with a bounded outbound queue.

    The writer task decouples fan-out from socket speed and emits a
    heartbeat whenever nothing was sent for heartbeat_interval seconds.
    """

    def __init__(
        self,
        websocket: WebSocket,
        identity_id: str,
        *,
        queue_size: int = 256,
        heartbeat_interval: float = 30.0,
    ) -> None:
        self.websocket = websocket
        self.identity_id = identity_id
        self.connection_id = next_connection_id()
        self.heartbeat_interval = heartbeat_interval
        self._queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=max(queue_size, 1))
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._writer: Optional[asyncio.Task] = None
        self.dropped = 0

    def __repr__(self) -> str:
        return f"<WebSocketConnection(id={self.connection_id}, identity={self.identity_id})>"

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._writer = asyncio.create_task(self._writer_loop())

    def _enqueue(self, event: Dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "[REALTIME] Outbound queue full, dropping event",
                extra={
                    "identity_id": self.identity_id,
                    "connection_id": self.connection_id,
                    "event_type": event.get("type"),
                },
            )
            return False

    def deliver(self, event: Dict[str, Any]) -> bool:
        loop = self._loop
        if loop is None or loop.is_closed():
            return False
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            return self._enqueue(event)
        # Publishing from a worker thread; hand off to the connection's loop.
        loop.call_soon_threadsafe(self._enqueue, event)
        return True

    async def _writer_loop(self) -> None:
        while True:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=self.heartbeat_interval)
            except asyncio.TimeoutError:
                event = build_heartbeat_event()
                logger.debug(f"[REALTIME-HEARTBEAT] Sending heartbeat for {self.identity_id}")
            if not await safe_send_json(self.websocket, event):
                logger.info(
                    "[REALTIME] Writer stopping, socket no longer connected",
                    extra={"identity_id": self.identity_id, "connection_id": self.connection_id},
                )
                return

    async def close(self) -> None:
        """Stop the writer task. The socket itself is closed by the gateway."""
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._writer = None

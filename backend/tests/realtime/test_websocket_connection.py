import asyncio
from typing import Any, Dict, List

from fastapi.websockets import WebSocketState
import pytest

from creatorlink.services.messaging.connection import WebSocketConnection, safe_send_json


class FakeWebSocket:
    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: List[Dict[str, Any]] = []

    async def send_json(self, data: Dict[str, Any]) -> None:
        self.sent.append(data)


async def wait_for_sent(websocket: FakeWebSocket, count: int) -> None:
    for _ in range(100):
        if len(websocket.sent) >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"expected {count} frames, got {len(websocket.sent)}")


class TestWebSocketConnection:
    def test_deliver_before_start_is_dropped(self):
        connection = WebSocketConnection(FakeWebSocket(), "01HIDENTITYAAAAAAAAAAAAAAA")

        assert connection.deliver({"type": "new_message"}) is False

    @pytest.mark.asyncio
    async def test_writer_sends_in_order(self):
        websocket = FakeWebSocket()
        connection = WebSocketConnection(websocket, "01HIDENTITYAAAAAAAAAAAAAAA")
        connection.start()

        assert connection.deliver({"type": "first"})
        assert connection.deliver({"type": "second"})
        await wait_for_sent(websocket, 2)
        await connection.close()

        assert [event["type"] for event in websocket.sent] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_full_queue_drops_newest(self):
        websocket = FakeWebSocket()
        connection = WebSocketConnection(websocket, "01HIDENTITYAAAAAAAAAAAAAAA", queue_size=1)
        connection.start()

        # The writer has not run yet, so the second event finds the queue full.
        assert connection.deliver({"type": "kept"}) is True
        assert connection.deliver({"type": "dropped"}) is False
        await wait_for_sent(websocket, 1)
        await connection.close()

        assert connection.dropped == 1
        assert [event["type"] for event in websocket.sent] == ["kept"]

    @pytest.mark.asyncio
    async def test_idle_socket_gets_heartbeat(self):
        websocket = FakeWebSocket()
        connection = WebSocketConnection(
            websocket, "01HIDENTITYAAAAAAAAAAAAAAA", heartbeat_interval=0.01
        )
        connection.start()

        await wait_for_sent(websocket, 1)
        await connection.close()

        assert websocket.sent[0]["type"] == "heartbeat"

    @pytest.mark.asyncio
    async def test_deliver_from_worker_thread(self):
        websocket = FakeWebSocket()
        connection = WebSocketConnection(websocket, "01HIDENTITYAAAAAAAAAAAAAAA")
        connection.start()

        accepted = await asyncio.to_thread(connection.deliver, {"type": "from_thread"})
        await wait_for_sent(websocket, 1)
        await connection.close()

        assert accepted is True
        assert websocket.sent[0]["type"] == "from_thread"

    @pytest.mark.asyncio
    async def test_writer_stops_when_socket_is_gone(self):
        websocket = FakeWebSocket()
        websocket.application_state = WebSocketState.DISCONNECTED
        connection = WebSocketConnection(websocket, "01HIDENTITYAAAAAAAAAAAAAAA")
        connection.start()

        connection.deliver({"type": "lost"})
        for _ in range(20):
            await asyncio.sleep(0)
        await connection.close()

        assert websocket.sent == []

    @pytest.mark.asyncio
    async def test_safe_send_json(self):
        websocket = FakeWebSocket()

        assert await safe_send_json(websocket, {"type": "ok"}) is True
        websocket.application_state = WebSocketState.DISCONNECTED
        assert await safe_send_json(websocket, {"type": "late"}) is False
        assert websocket.sent == [{"type": "ok"}]

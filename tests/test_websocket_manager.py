"""Tests for the WebSocket fan-out."""

import asyncio
import json

from erd_backend.websocket_manager import WebSocketManager


class FakeSocket:
    def __init__(self, broken: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self.broken = broken

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_broadcast_drops_failed_clients() -> None:
    manager = WebSocketManager()
    good, bad = FakeSocket(), FakeSocket(broken=True)

    async def scenario() -> None:
        await manager.connect(good)
        await manager.connect(bad)
        await manager.notify_schema_updated({"can_undo": True, "can_redo": False, "is_dirty": True})

    asyncio.run(scenario())
    assert good.accepted and bad.accepted
    assert good.sent == [{"type": "schema_updated", "can_undo": True, "can_redo": False, "is_dirty": True}]
    assert manager.connection_count == 1


def test_disconnect_and_empty_broadcast() -> None:
    manager = WebSocketManager()
    socket = FakeSocket()

    async def scenario() -> None:
        await manager.connect(socket)
        await manager.disconnect(socket)
        await manager.broadcast({"type": "anything"})

    asyncio.run(scenario())
    assert manager.connection_count == 0
    assert socket.sent == []

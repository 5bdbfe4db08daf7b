"""
WebSocket Manager - Pushes schema change events to connected editors.

Every client (the canvas frontend, CLI watchers, agents) receives a
schema_updated event carrying the history flags whenever the store changes.
The schema itself is fetched over REST.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Registry of live editor sockets."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
            count = len(self._clients)
        logger.info("Editor client connected (%d open)", count)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
            count = len(self._clients)
        logger.info("Editor client disconnected (%d open)", count)

    async def send(self, websocket: WebSocket, message: dict):
        """Reply to a single client."""
        await websocket.send_text(json.dumps(message))

    async def broadcast(self, message: dict):
        """
        Send a message to every client.

        A client whose send raises is dropped from the registry.
        """
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return

        payload = json.dumps(message)
        results = await asyncio.gather(
            *(client.send_text(payload) for client in clients),
            return_exceptions=True,
        )
        dead = {client for client, result in zip(clients, results) if isinstance(result, Exception)}
        if dead:
            logger.debug("Dropping %d editor client(s) after failed send", len(dead))
            async with self._lock:
                self._clients -= dead

    async def notify_schema_updated(self, state: dict):
        """Broadcast the store's history flags after a change."""
        await self.broadcast({
            "type": "schema_updated",
            "can_undo": state["can_undo"],
            "can_redo": state["can_redo"],
            "is_dirty": state["is_dirty"],
        })

    @property
    def connection_count(self) -> int:
        return len(self._clients)

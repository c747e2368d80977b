import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

from bridge_console.view import ViewModel

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Pushes the view model to connected UI clients whenever it changes."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._last_version = None

    async def connect(self, websocket: WebSocket, view: ViewModel):
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket client connected. Total: {len(self.active_connections)}")
        await websocket.send_text(self._message(view))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket client disconnected. Total: {len(self.active_connections)}")

    async def broadcast_view(self, view: ViewModel):
        snapshot = view.snapshot()
        if snapshot["version"] == self._last_version:
            return
        self._last_version = snapshot["version"]
        await self._send_to_all(json.dumps({"type": "view", "data": snapshot}))

    def _message(self, view: ViewModel) -> str:
        return json.dumps({"type": "view", "data": view.snapshot()})

    async def _send_to_all(self, message: str):
        if not self.active_connections:
            return

        disconnected = set()

        async with self._lock:
            for connection in self.active_connections:
                try:
                    await connection.send_text(message)
                except Exception as e:
                    logger.warning(f"Failed to send to client: {e}")
                    disconnected.add(connection)

            self.active_connections -= disconnected

    @property
    def client_count(self) -> int:
        return len(self.active_connections)

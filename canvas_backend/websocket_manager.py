"""
WebSocket Manager - Handles real-time connections and broadcasts.

Connected clients (canvas editors, viewers) receive a `canvas_updated` or
`canvas_deleted` event whenever the service saves or removes a document, and
refetch the canvas over REST.
"""
import asyncio
import json
import logging
from typing import Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """
    Manages WebSocket connections and broadcasts.

    Events carry only the canvas id; clients fetch the document itself via
    GET /api/canvases/{id}.
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("WebSocket connected. Total connections: %d", len(self._connections))

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected. Total connections: %d", len(self._connections))

    async def broadcast(self, message: dict):
        """
        Broadcast a message to all connected clients.

        Clients whose send fails are dropped.
        """
        if not self._connections:
            return

        message_text = json.dumps(message)
        failed: Set[WebSocket] = set()

        async with self._lock:
            for websocket in self._connections:
                try:
                    await websocket.send_text(message_text)
                except Exception as e:
                    logger.debug("Dropping WebSocket after failed send: %s", e)
                    failed.add(websocket)

            self._connections -= failed

    async def notify(self, event: str, canvas_id: str):
        """Send a `{"type": event, "canvasId": id}` event to every client."""
        await self.broadcast({
            "type": event,
            "canvasId": canvas_id
        })

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)

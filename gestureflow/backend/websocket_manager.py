"""
Renderer push channel.

Renderers connect to /ws and receive two kinds of events:
- diagram_updated: the controller state changed; fetch GET /api/diagram
- toast: a user-visible outcome (saved, camera blocked, connection error)
"""

import asyncio
import logging
from typing import Literal, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ServerEvent(BaseModel):
    """One message pushed to every renderer."""
    type: Literal["diagram_updated", "toast"]
    message: Optional[str] = None
    kind: Optional[str] = None


class WebSocketManager:
    """Tracks renderer sockets and fans events out to them."""

    def __init__(self):
        self._clients: list[WebSocket] = []
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.append(websocket)
            count = len(self._clients)
        logger.info("Renderer connected (%d total)", count)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            if websocket in self._clients:
                self._clients.remove(websocket)
            count = len(self._clients)
        logger.info("Renderer disconnected (%d total)", count)

    async def broadcast(self, event: ServerEvent) -> int:
        """
        Send an event to every renderer and return how many received it.

        A renderer whose send fails is dropped.
        """
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return 0

        text = event.model_dump_json(exclude_none=True)
        dead = []
        for websocket in clients:
            try:
                await websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug("Dropping renderer after failed send: %s", e)
                dead.append(websocket)

        if dead:
            async with self._lock:
                self._clients = [ws for ws in self._clients if ws not in dead]
        return len(clients) - len(dead)

    async def notify_diagram_updated(self) -> int:
        return await self.broadcast(ServerEvent(type="diagram_updated"))

    async def notify_toast(self, message: str, kind: str = "info") -> int:
        return await self.broadcast(ServerEvent(type="toast", message=message, kind=kind))

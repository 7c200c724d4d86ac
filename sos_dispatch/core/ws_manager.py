"""Pub/sub channel: typed alert events pushed over WebSocket connections."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Events produced by the dispatch engine
NEW_ALERT = "new_alert"
VOLUNTEER_RESPONDING = "volunteer_responding"
ALERT_CANCELLED = "alert_cancelled"
LOCATION_UPDATE = "location_update"


class Publisher(Protocol):
    """Best-effort, at-most-once event fan-out addressed by user id."""

    def publish(self, subscriber_id: int, event: str, payload: dict[str, Any]) -> None: ...


class ConnectionManager:
    """Tracks active WebSocket connections keyed by user_id."""

    def __init__(self) -> None:
        # user_id -> set of active websocket connections
        self._connections: dict[int, set[WebSocket]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self._connections.setdefault(user_id, set()).add(websocket)
        logger.info("WS connected: user=%s (total=%s)", user_id, self.total_connections)

    def disconnect(self, websocket: WebSocket, user_id: int) -> None:
        conns = self._connections.get(user_id)
        if conns:
            conns.discard(websocket)
            if not conns:
                del self._connections[user_id]
        logger.info("WS disconnected: user=%s (total=%s)", user_id, self.total_connections)

    async def send_to_user(self, user_id: int, event: str, data: Any) -> None:
        """Send event to all connections for a user."""
        conns = self._connections.get(user_id, set())
        payload = json.dumps({"event": event, "data": data}, default=str)
        dead: list[WebSocket] = []
        for ws in list(conns):
            try:
                await ws.send_text(payload)
            except Exception:
                dead.append(ws)
        for ws in dead:
            conns.discard(ws)

    def publish(self, subscriber_id: int, event: str, payload: dict[str, Any]) -> None:
        """Schedule delivery and return immediately.

        Safe to call from the event loop or from a threadpool worker. Events
        for subscribers without an open connection are dropped.
        """
        if self._loop is None or subscriber_id not in self._connections:
            logger.debug("No live connection for user=%s, dropping %s", subscriber_id, event)
            return
        coro = self.send_to_user(subscriber_id, event, payload)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            running.create_task(coro)
        else:
            asyncio.run_coroutine_threadsafe(coro, self._loop)

    @property
    def total_connections(self) -> int:
        return sum(len(c) for c in self._connections.values())

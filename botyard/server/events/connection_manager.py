# botyard/server/events/connection_manager.py
"""WebSocket connection tracking for log streaming clients."""
from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger


class ConnectionManager:
    """Tracks open log-stream WebSockets and which bot each one watches.

    Delivery to a client is bounded by a timeout so a hung socket only
    stalls its own stream.

    Attributes:
        _connections: Dict mapping WebSocket to the bot id it streams.
        _lock: Async lock for connection bookkeeping.
    """

    def __init__(self) -> None:
        """Initialize connection manager."""
        self._connections: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, bot_id: str) -> None:
        """Accept and register a new WebSocket connection.

        Args:
            websocket: The WebSocket to connect.
            bot_id: Bot whose logs the connection streams.
        """
        await websocket.accept()
        async with self._lock:
            self._connections[websocket] = bot_id

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection.

        Args:
            websocket: The WebSocket to disconnect.
        """
        async with self._lock:
            self._connections.pop(websocket, None)

    async def send(
        self, ws: WebSocket, payload: dict[str, Any], timeout: float = 5.0
    ) -> bool:
        """Send payload to a single client with timeout.

        Args:
            ws: The WebSocket connection to send to.
            payload: The JSON-serializable payload to send.
            timeout: Maximum seconds to wait for send (default 5.0).

        Returns:
            True if sent, False on disconnect/timeout errors.
        """
        try:
            await asyncio.wait_for(ws.send_json(payload), timeout=timeout)
            return True
        except (WebSocketDisconnect, TimeoutError, ConnectionResetError, ConnectionError, RuntimeError) as exc:
            logger.debug("websocket_send_failed", error=str(exc), error_type=type(exc).__name__)
            return False

    def watchers(self, bot_id: str) -> int:
        """Count connections streaming a given bot."""
        return sum(1 for watched in self._connections.values() if watched == bot_id)

    async def close_all(self, code: int = 1000, reason: str = "") -> None:
        """Close all connections gracefully.

        Args:
            code: WebSocket close code (default 1000 = normal closure).
            reason: Human-readable close reason.
        """
        async with self._lock:
            for ws in list(self._connections.keys()):
                with suppress(Exception):
                    # Ignore errors during shutdown
                    await ws.close(code=code, reason=reason)
            self._connections.clear()

    @property
    def active_connections(self) -> int:
        """Get count of active connections.

        Returns:
            Number of active WebSocket connections.
        """
        return len(self._connections)

# tests/unit/server/events/test_connection_manager.py
"""Tests for WebSocket connection manager."""
import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi import WebSocketDisconnect

from botyard.server.events.connection_manager import ConnectionManager


class TestConnectionManager:
    """Tests for ConnectionManager."""

    @pytest.fixture
    def manager(self):
        """Create ConnectionManager instance."""
        return ConnectionManager()

    @pytest.fixture
    def mock_websocket(self):
        """Create mock WebSocket."""
        ws = AsyncMock()
        ws.accept = AsyncMock()
        ws.send_json = AsyncMock()
        ws.close = AsyncMock()
        return ws

    async def test_connect_accepts_and_tracks(self, manager, mock_websocket):
        """connect() accepts the socket and records the watched bot."""
        await manager.connect(mock_websocket, "bot1")

        mock_websocket.accept.assert_awaited_once()
        assert manager.active_connections == 1
        assert manager._connections[mock_websocket] == "bot1"

    async def test_disconnect_removes_connection(self, manager, mock_websocket):
        """disconnect() removes connection from tracking."""
        await manager.connect(mock_websocket, "bot1")
        await manager.disconnect(mock_websocket)

        assert manager.active_connections == 0

    async def test_disconnect_unknown_is_noop(self, manager, mock_websocket):
        """disconnect() tolerates sockets that were never connected."""
        await manager.disconnect(mock_websocket)
        assert manager.active_connections == 0

    async def test_watchers_counts_per_bot(self, manager):
        """watchers() counts only connections for the given bot."""
        sockets = [AsyncMock() for _ in range(3)]
        await manager.connect(sockets[0], "bot1")
        await manager.connect(sockets[1], "bot1")
        await manager.connect(sockets[2], "bot2")

        assert manager.watchers("bot1") == 2
        assert manager.watchers("bot2") == 1
        assert manager.watchers("bot3") == 0

    async def test_send_success(self, manager, mock_websocket):
        """send() returns True when the payload was delivered."""
        assert await manager.send(mock_websocket, {"type": "ping"}) is True
        mock_websocket.send_json.assert_awaited_once_with({"type": "ping"})

    @pytest.mark.parametrize(
        "error",
        [WebSocketDisconnect(), ConnectionResetError(), RuntimeError("closed")],
        ids=["disconnect", "reset", "runtime"],
    )
    async def test_send_failure_returns_false(self, manager, mock_websocket, error):
        """send() reports delivery failures instead of raising."""
        mock_websocket.send_json.side_effect = error
        assert await manager.send(mock_websocket, {"type": "ping"}) is False

    async def test_send_timeout_returns_false(self, manager, mock_websocket):
        """A hung client only stalls its own send up to the timeout."""

        async def hang(payload):
            await asyncio.sleep(10)

        mock_websocket.send_json.side_effect = hang
        assert await manager.send(mock_websocket, {"type": "ping"}, timeout=0.01) is False

    async def test_close_all(self, manager):
        """close_all() closes every connection and clears tracking."""
        sockets = [AsyncMock() for _ in range(2)]
        for ws in sockets:
            await manager.connect(ws, "bot1")

        await manager.close_all(code=1001, reason="Server shutting down")

        for ws in sockets:
            ws.close.assert_awaited_once_with(code=1001, reason="Server shutting down")
        assert manager.active_connections == 0

    async def test_close_all_ignores_close_errors(self, manager, mock_websocket):
        """close_all() continues past sockets that fail to close."""
        other = AsyncMock()
        mock_websocket.close.side_effect = RuntimeError("already closed")
        await manager.connect(mock_websocket, "bot1")
        await manager.connect(other, "bot2")

        await manager.close_all()

        other.close.assert_awaited_once()
        assert manager.active_connections == 0

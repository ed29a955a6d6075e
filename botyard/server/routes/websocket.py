"""WebSocket endpoint for live bot log streaming."""
import asyncio
import contextlib
import json
from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from loguru import logger

from botyard.core.exceptions import BundleNotFoundError
from botyard.server.config import ServerConfig
from botyard.server.dependencies import get_config, get_controller
from botyard.server.events.connection_manager import ConnectionManager
from botyard.server.events.log_buffer import LogSubscription
from botyard.server.models.websocket import (
    ErrorMessage,
    HistoryMessage,
    LogEntry,
    LogMessage,
    PingMessage,
)
from botyard.server.orchestrator.controller import LifecycleController


router = APIRouter(tags=["websocket"])

# Global connection manager instance
connection_manager = ConnectionManager()

# Policy violation: the request cannot be served
_CLOSE_POLICY = 1008


async def _reject(websocket: WebSocket, message: str) -> None:
    await websocket.accept()
    with contextlib.suppress(WebSocketDisconnect, RuntimeError):
        await websocket.send_json(ErrorMessage(message=message).model_dump(mode="json"))
        await websocket.close(code=_CLOSE_POLICY)


@router.websocket("/ws/logs")
async def logs_endpoint(
    websocket: WebSocket,
    bot_id: Annotated[str | None, Query(alias="botId")] = None,
    controller: LifecycleController = Depends(get_controller),
    config: ServerConfig = Depends(get_config),
) -> None:
    """WebSocket endpoint streaming one bot's output.

    Protocol:
        Server -> Client:
            {"type": "history", "logs": [LogEntry, ...]}   (once, up to 200)
            {"type": "log", "message": LogEntry}
            {"type": "ping"}
            {"type": "error", "message": "..."}            (then close)

        Client -> Server:
            {"type": "pong"}  (anything else is ignored)

    The stream survives stop/start of the bot and ends when the bot is
    deleted or the server shuts down.

    Args:
        websocket: The WebSocket connection.
        bot_id: Bot whose logs to stream.
        controller: Lifecycle controller.
        config: Server configuration for the heartbeat interval.
    """
    if not bot_id:
        await _reject(websocket, "Missing botId")
        return

    try:
        replay, subscription = controller.subscribe_logs(bot_id)
    except BundleNotFoundError as exc:
        await _reject(websocket, str(exc))
        return

    await connection_manager.connect(websocket, bot_id)
    logger.info(
        "websocket_connected",
        bot_id=bot_id,
        active_connections=connection_manager.active_connections,
    )

    try:
        history = HistoryMessage(logs=[LogEntry.from_line(line) for line in replay])
        await websocket.send_json(history.model_dump(mode="json"))

        tasks = [
            asyncio.create_task(_forward_logs(websocket, subscription)),
            asyncio.create_task(_receive_loop(websocket)),
            asyncio.create_task(_heartbeat_loop(websocket, config.websocket_heartbeat_seconds)),
        ]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if subscription.closed:
            with contextlib.suppress(WebSocketDisconnect, RuntimeError):
                await websocket.close(code=1000, reason="Log stream ended")

    except WebSocketDisconnect:
        logger.info("websocket_disconnected", bot_id=bot_id)
    except Exception as e:
        logger.error("websocket_error", bot_id=bot_id, error=str(e))
    finally:
        controller.unsubscribe_logs(bot_id, subscription)
        await connection_manager.disconnect(websocket)
        logger.info(
            "websocket_cleanup",
            bot_id=bot_id,
            active_connections=connection_manager.active_connections,
        )


async def _forward_logs(websocket: WebSocket, subscription: LogSubscription) -> None:
    """Relay live lines until the feed ends or the client stops accepting them."""
    async for line in subscription:
        message = LogMessage(message=LogEntry.from_line(line))
        if not await connection_manager.send(websocket, message.model_dump(mode="json")):
            return


async def _receive_loop(websocket: WebSocket) -> None:
    """Consume client frames so a disconnect is noticed promptly."""
    try:
        while True:
            text = await websocket.receive_text()
            with contextlib.suppress(ValueError):
                data = json.loads(text)
                if isinstance(data, dict) and data.get("type") == "pong":
                    logger.debug("heartbeat_pong_received")
    except (WebSocketDisconnect, RuntimeError):
        return


async def _heartbeat_loop(websocket: WebSocket, interval: float = 30.0) -> None:
    """Send periodic ping messages to keep WebSocket connection alive.

    Args:
        websocket: The WebSocket connection to send pings to.
        interval: Seconds between ping messages. Defaults to 30.0.
    """
    ping = PingMessage().model_dump(mode="json")
    while True:
        await asyncio.sleep(interval)
        if not await connection_manager.send(websocket, ping):
            return
        logger.debug("heartbeat_ping_sent")

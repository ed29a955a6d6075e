"""API models for the botyard server."""

from botyard.server.models.requests import WriteFileRequest
from botyard.server.models.responses import (
    ActionResponse,
    BotStatusResponse,
    BotSummary,
    ErrorResponse,
    FileContentResponse,
    FileEntry,
    StartInfo,
    UploadResponse,
)
from botyard.server.models.websocket import (
    ErrorMessage,
    HistoryMessage,
    LogEntry,
    LogMessage,
    PingMessage,
    PongMessage,
    ServerMessage,
)


__all__ = [
    "ActionResponse",
    "BotStatusResponse",
    "BotSummary",
    "ErrorMessage",
    "ErrorResponse",
    "FileContentResponse",
    "FileEntry",
    "HistoryMessage",
    "LogEntry",
    "LogMessage",
    "PingMessage",
    "PongMessage",
    "ServerMessage",
    "StartInfo",
    "UploadResponse",
    "WriteFileRequest",
]

# botyard/server/models/websocket.py
"""WebSocket protocol message models."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from botyard.server.events.log_buffer import LogLine


class LogEntry(BaseModel):
    """One captured log line."""

    timestamp: datetime = Field(..., description="Server capture time (UTC)")
    text: str = Field(..., description="Raw line text")
    line: str = Field(..., description="Rendered '[timestamp] text' form")

    @classmethod
    def from_line(cls, line: LogLine) -> "LogEntry":
        return cls(timestamp=line.timestamp, text=line.text, line=line.render())


# Server -> Client Messages


class HistoryMessage(BaseModel):
    """Replay of recent lines sent once after connecting."""

    type: Literal["history"] = "history"
    logs: list[LogEntry] = Field(..., description="Up to the most recent 200 lines")


class LogMessage(BaseModel):
    """A live log line."""

    type: Literal["log"] = "log"
    message: LogEntry = Field(..., description="The appended line")


class PingMessage(BaseModel):
    """Heartbeat ping from server."""

    type: Literal["ping"] = "ping"


class ErrorMessage(BaseModel):
    """Sent before the server closes a connection it cannot serve."""

    type: Literal["error"] = "error"
    message: str = Field(..., description="Why the connection is being closed")


# Union type for all server messages
ServerMessage = HistoryMessage | LogMessage | PingMessage | ErrorMessage


# Client -> Server Messages


class PongMessage(BaseModel):
    """Heartbeat response from client."""

    type: Literal["pong"] = "pong"

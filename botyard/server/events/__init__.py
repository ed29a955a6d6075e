"""Log capture and live delivery for running bots."""
from botyard.server.events.connection_manager import ConnectionManager
from botyard.server.events.log_buffer import LogBuffer, LogLine, LogSubscription


__all__ = ["ConnectionManager", "LogBuffer", "LogLine", "LogSubscription"]

"""botyard FastAPI server package."""
from botyard.server.config import ServerConfig
from botyard.server.exceptions import FileOperationError


__all__ = [
    "FileOperationError",
    "ServerConfig",
]

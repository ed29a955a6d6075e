"""API route modules."""
from botyard.server.routes.bots import router as bots_router
from botyard.server.routes.files import router as files_router
from botyard.server.routes.health import router as health_router
from botyard.server.routes.websocket import router as websocket_router


__all__ = ["bots_router", "files_router", "health_router", "websocket_router"]

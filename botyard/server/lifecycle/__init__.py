"""Server lifecycle management."""

from botyard.server.lifecycle.server import ServerLifecycle


__all__ = ["ServerLifecycle"]

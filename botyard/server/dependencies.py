# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""FastAPI dependency injection providers."""

from __future__ import annotations

from botyard.server.bundles import BundleStore
from botyard.server.config import ServerConfig
from botyard.server.orchestrator.controller import LifecycleController


# Module-level controller instance
_controller: LifecycleController | None = None

# Module-level config instance
_config: ServerConfig | None = None


def set_controller(controller: LifecycleController) -> None:
    """Set the global lifecycle controller.

    This should be called during application startup.

    Args:
        controller: LifecycleController instance to set.
    """
    global _controller
    _controller = controller


def clear_controller() -> None:
    """Clear the global lifecycle controller.

    This should be called during application shutdown.
    """
    global _controller
    _controller = None


def get_controller() -> LifecycleController:
    """Get the lifecycle controller.

    Returns:
        The current LifecycleController instance.

    Raises:
        RuntimeError: If the controller is not initialized.
    """
    if _controller is None:
        raise RuntimeError("Controller not initialized. Is the server running?")
    return _controller


def get_bundle_store() -> BundleStore:
    """Get the bundle store owned by the controller."""
    return get_controller().bundles


def set_config(config: ServerConfig) -> None:
    global _config
    _config = config


def clear_config() -> None:
    global _config
    _config = None


def get_config() -> ServerConfig:
    """FastAPI dependency that provides the server configuration.

    Raises:
        RuntimeError: If config is not initialized (server not started).
    """
    if _config is None:
        raise RuntimeError("Server config not initialized. Is the server running?")
    return _config

# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# botyard/core/exceptions.py
"""Custom exceptions for botyard."""


class BotyardError(Exception):
    """Base exception for all botyard errors."""

    pass


class BundleNotFoundError(BotyardError):
    """Raised when a referenced bundle directory does not exist."""

    def __init__(self, bundle_id: str):
        self.bundle_id = bundle_id
        super().__init__(f"Bot not found: {bundle_id}")


class ConfigurationError(BotyardError):
    """Raised when required configuration is missing or invalid."""

    pass


class NoEntryPointError(ConfigurationError):
    """Raised when no runnable entry point can be resolved for a bundle."""

    def __init__(self, bundle_id: str, reason: str | None = None):
        self.bundle_id = bundle_id
        self.reason = reason
        message = (
            "No entry point found (index.js/app.js/server.js or package.json main)"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SandboxRuntimeError(BotyardError):
    """Raised when the container runtime rejects a create, start or stop request."""

    def __init__(self, message: str, bundle_id: str | None = None):
        self.bundle_id = bundle_id
        super().__init__(message)


class InvalidArchiveError(BotyardError):
    """Raised when an uploaded bundle archive cannot be extracted."""

    pass


class SecurityError(BotyardError):
    """Raised when a security constraint is violated."""

    pass


class PathRejectedError(SecurityError):
    """Raised when a requested path resolves outside its bundle root."""

    def __init__(self, requested: str, reason: str = "outside bundle root"):
        self.requested = requested
        self.reason = reason
        super().__init__(f"Path rejected ({reason}): {requested!r}")

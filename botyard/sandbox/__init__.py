"""Sandbox execution infrastructure for isolated bundle environments."""

from botyard.sandbox.docker import DockerRuntime
from botyard.sandbox.entrypoint import ENTRY_CANDIDATES, resolve_entry_point
from botyard.sandbox.provider import (
    BindMount,
    ResourceLimits,
    SandboxExit,
    SandboxHandle,
    SandboxRuntime,
    SandboxSpec,
)


__all__ = [
    "BindMount",
    "DockerRuntime",
    "ENTRY_CANDIDATES",
    "ResourceLimits",
    "SandboxExit",
    "SandboxHandle",
    "SandboxRuntime",
    "SandboxSpec",
    "resolve_entry_point",
]

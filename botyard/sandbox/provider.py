# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""SandboxRuntime protocol: transport-agnostic isolated process interface."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Literal, Protocol, runtime_checkable


@dataclass(frozen=True)
class BindMount:
    """Host directory exposed inside the sandbox."""

    host_path: str
    container_path: str
    mode: Literal["rw", "ro"] = "rw"

    def as_volume_arg(self) -> str:
        return f"{self.host_path}:{self.container_path}:{self.mode}"


@dataclass(frozen=True)
class ResourceLimits:
    """Hard ceilings applied to a sandbox."""

    memory_bytes: int
    max_processes: int


@dataclass(frozen=True)
class SandboxSpec:
    """Everything a runtime needs to create and start one sandbox.

    Args:
        name: Unique sandbox name (derived from the bundle id).
        image: Container image to run.
        command: Command and arguments executed in the sandbox.
        working_dir: Working directory inside the sandbox.
        bind: Bundle directory mount.
        limits: Memory and process ceilings.
        network_disabled: Run without any network access.
        labels: Metadata attached to the sandbox.
    """

    name: str
    image: str
    command: list[str]
    working_dir: str
    bind: BindMount
    limits: ResourceLimits
    network_disabled: bool = True
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SandboxHandle:
    """Reference to a created sandbox. Compared by identity in the engine."""

    container_id: str
    name: str


@dataclass(frozen=True)
class SandboxExit:
    """Terminal result of a sandbox.

    Attributes:
        status_code: Process exit code, or None if it could not be determined.
        error: Runtime error text when waiting failed.
    """

    status_code: int | None
    error: str | None = None

    def describe(self) -> str:
        if self.error:
            return f'{{"StatusCode": null, "Error": {self.error!r}}}'
        return f'{{"StatusCode": {self.status_code}}}'


@runtime_checkable
class SandboxRuntime(Protocol):
    """Creates, observes and terminates isolated sandbox processes.

    Transport-agnostic interface; the Docker CLI implementation lives in
    ``botyard.sandbox.docker``.
    """

    async def create_and_start(self, spec: SandboxSpec) -> SandboxHandle:
        """Create and start a sandbox.

        Implementations must release any partially-created sandbox before
        raising.

        Raises:
            SandboxRuntimeError: If the runtime rejects creation or start.
        """
        ...

    def stream_output(self, handle: SandboxHandle) -> AsyncIterator[bytes]:
        """Stream merged stdout/stderr chunks until the sandbox exits."""
        ...

    async def stop(self, handle: SandboxHandle, grace_seconds: float) -> None:
        """Request graceful termination, forcing it after the grace period.

        Raises:
            SandboxRuntimeError: If the runtime rejects the stop.
        """
        ...

    async def wait(self, handle: SandboxHandle) -> SandboxExit:
        """Resolve once when the sandbox exits for any reason."""
        ...

    async def remove(self, handle: SandboxHandle) -> None:
        """Best-effort removal of the sandbox and its resources."""
        ...

    async def list_managed(self) -> list[str]:
        """List ids of sandboxes created under this runtime's naming convention."""
        ...

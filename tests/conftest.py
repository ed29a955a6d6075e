# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

Provides an in-memory sandbox runtime, a bundle factory and a controller
wired to both, so lifecycle behavior can be exercised without Docker.
"""
import asyncio
import io
import zipfile
from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest

from botyard.core.exceptions import SandboxRuntimeError
from botyard.sandbox.provider import SandboxExit, SandboxHandle, SandboxSpec
from botyard.server.bundles import BundleStore
from botyard.server.config import ServerConfig
from botyard.server.orchestrator.controller import LifecycleController


class FakeRuntime:
    """In-memory SandboxRuntime.

    Each created sandbox gets an output queue and an exit future. Tests feed
    output with ``emit`` and end a sandbox on its own with ``exit``.

    Attributes:
        created: Specs passed to create_and_start, in order.
        stopped: Handles passed to stop, in order.
        removed: Container ids passed to remove, in order.
        fail_create: Raise SandboxRuntimeError from create_and_start.
        fail_stop: Raise SandboxRuntimeError from stop.
        managed: Ids returned by list_managed.
    """

    def __init__(self) -> None:
        self.created: list[SandboxSpec] = []
        self.stopped: list[SandboxHandle] = []
        self.removed: list[str] = []
        self.fail_create = False
        self.fail_stop = False
        self.managed: list[str] = []
        self._outputs: dict[str, asyncio.Queue[bytes | None]] = {}
        self._exits: dict[str, asyncio.Future[SandboxExit]] = {}

    async def create_and_start(self, spec: SandboxSpec) -> SandboxHandle:
        # Yield so concurrent callers interleave here
        await asyncio.sleep(0)
        if self.fail_create:
            raise SandboxRuntimeError(f"Failed to start container {spec.name}: boom")
        self.created.append(spec)
        container_id = f"{len(self.created):012d}deadbeef"
        self._outputs[container_id] = asyncio.Queue()
        self._exits[container_id] = asyncio.get_running_loop().create_future()
        return SandboxHandle(container_id=container_id, name=spec.name)

    async def stream_output(self, handle: SandboxHandle) -> AsyncIterator[bytes]:
        queue = self._outputs[handle.container_id]
        while True:
            chunk = await queue.get()
            if chunk is None:
                return
            yield chunk

    async def stop(self, handle: SandboxHandle, grace_seconds: float) -> None:
        self.stopped.append(handle)
        if self.fail_stop:
            raise SandboxRuntimeError(f"Failed to stop container {handle.name}: boom")
        self.exit(handle, 143)

    async def wait(self, handle: SandboxHandle) -> SandboxExit:
        return await self._exits[handle.container_id]

    async def remove(self, handle: SandboxHandle) -> None:
        self.removed.append(handle.container_id)

    async def list_managed(self) -> list[str]:
        return list(self.managed)

    def emit(self, handle: SandboxHandle, *lines: str) -> None:
        """Queue output lines as a sandbox would print them."""
        for line in lines:
            self._outputs[handle.container_id].put_nowait(f"{line}\n".encode())

    def exit(self, handle: SandboxHandle, status_code: int) -> None:
        """End a sandbox: close its output and resolve its wait."""
        future = self._exits[handle.container_id]
        if not future.done():
            self._outputs[handle.container_id].put_nowait(None)
            future.set_result(SandboxExit(status_code=status_code))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate is true or fail the test."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def make_zip(files: dict[str, str]) -> bytes:
    """Build an in-memory zip archive from a path -> content mapping."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


@pytest.fixture
def server_config(tmp_path: Path) -> ServerConfig:
    """Server config pointing at a temp bundles dir with fast timeouts."""
    return ServerConfig(
        bundles_dir=tmp_path / "bots",
        stop_grace_seconds=0,
        reader_drain_seconds=0.2,
        log_buffer_capacity=2000,
        log_replay_lines=200,
    )


@pytest.fixture
def bundle_store(server_config: ServerConfig) -> BundleStore:
    return BundleStore(server_config.bundles_dir)


@pytest.fixture
def make_bundle(bundle_store: BundleStore) -> Callable[..., Path]:
    """Factory creating a bundle directory with the given files.

    Usage:
        make_bundle("bot1", {"index.js": "console.log('hi')"})
    """

    def _make(bundle_id: str, files: dict[str, str] | None = None) -> Path:
        root = bundle_store.root / bundle_id
        root.mkdir(parents=True)
        for name, content in (files if files is not None else {"index.js": "// bot"}).items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return root

    return _make


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
async def controller(
    fake_runtime: FakeRuntime,
    bundle_store: BundleStore,
    server_config: ServerConfig,
) -> AsyncIterator[LifecycleController]:
    """Lifecycle controller over the fake runtime; shut down after the test."""
    ctrl = LifecycleController(runtime=fake_runtime, bundles=bundle_store, config=server_config)
    yield ctrl
    await ctrl.shutdown()

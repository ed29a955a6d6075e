# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Lifecycle controller for bundle sandboxes.

Drives the per-bundle state machine::

    stopped -> starting -> running -> stopping -> stopped
                              \\______ exited ______/

Start, stop, restart and delete for one bundle are serialized by the
registry's per-bundle lock. Status reads and log subscriptions never take
that lock.
"""
from __future__ import annotations

import asyncio
from pathlib import Path

from loguru import logger

from botyard.core.exceptions import BundleNotFoundError, SandboxRuntimeError
from botyard.core.types import BotStatus, InstanceState, StartResult
from botyard.sandbox.entrypoint import resolve_entry_point
from botyard.sandbox.provider import (
    BindMount,
    ResourceLimits,
    SandboxHandle,
    SandboxRuntime,
    SandboxSpec,
)
from botyard.server.bundles import BundleStore
from botyard.server.config import ServerConfig
from botyard.server.events.log_buffer import LogLine, LogSubscription
from botyard.server.orchestrator.registry import BotInstance, BotRegistry


BUNDLE_LABEL = "botyard.bundle"


class LifecycleController:
    """Starts, stops and observes one sandbox per bundle.

    The controller is the only writer of instance state and handles. It owns
    the registry; callers reach instances only through its methods.

    Args:
        runtime: Container runtime used to run sandboxes.
        bundles: On-disk bundle storage.
        config: Server configuration (limits, image, timeouts).
    """

    def __init__(
        self,
        runtime: SandboxRuntime,
        bundles: BundleStore,
        config: ServerConfig,
    ) -> None:
        self._runtime = runtime
        self._bundles = bundles
        self._config = config
        self._registry = BotRegistry(
            log_capacity=config.log_buffer_capacity,
            replay_size=config.log_replay_lines,
        )

    @property
    def registry(self) -> BotRegistry:
        return self._registry

    @property
    def bundles(self) -> BundleStore:
        return self._bundles

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def status(self, bundle_id: str) -> BotStatus:
        """Return the current state of a bundle without side effects.

        Raises:
            BundleNotFoundError: If the bundle has neither a directory nor
                an instance.
        """
        instance = self._registry.get(bundle_id)
        if instance is not None:
            return instance.status()
        if not self._bundles.exists(bundle_id):
            raise BundleNotFoundError(bundle_id)
        return BotStatus(bundle_id=bundle_id)

    def is_running(self, bundle_id: str) -> bool:
        instance = self._registry.get(bundle_id)
        return instance is not None and instance.status().running

    def subscribe_logs(
        self, bundle_id: str
    ) -> tuple[list[LogLine], LogSubscription]:
        """Attach a live log observer to a bundle.

        Returns:
            Tuple of (replay, subscription). The caller must pass the
            subscription to ``unsubscribe_logs`` when it disconnects.

        Raises:
            BundleNotFoundError: If the bundle does not exist.
        """
        instance = self._registry.get(bundle_id)
        if instance is None:
            if not self._bundles.exists(bundle_id):
                raise BundleNotFoundError(bundle_id)
            instance = self._registry.get_or_create(bundle_id)
        return instance.logs.subscribe()

    def unsubscribe_logs(self, bundle_id: str, subscription: LogSubscription) -> None:
        """Detach a log observer. Safe after the bundle was deleted."""
        instance = self._registry.get(bundle_id)
        if instance is not None:
            instance.logs.unsubscribe(subscription)
        else:
            subscription.close()

    def resolve_safe_path(self, bundle_id: str, requested: str) -> Path:
        """Resolve a file path confined to a bundle's root.

        Raises:
            BundleNotFoundError: If the bundle does not exist.
            PathRejectedError: If the path escapes the bundle root.
        """
        return self._bundles.resolve_safe_path(bundle_id, requested)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, bundle_id: str) -> StartResult:
        """Start a bundle's sandbox, or report the one already running.

        Raises:
            BundleNotFoundError: If the bundle directory does not exist.
            NoEntryPointError: If no entry point can be resolved.
            SandboxRuntimeError: If the runtime fails to create the sandbox.
        """
        bundle_dir = self._bundles.path_for(bundle_id)
        async with self._registry.transition(bundle_id):
            return await self._start_locked(bundle_id, bundle_dir)

    async def stop(self, bundle_id: str) -> None:
        """Stop a bundle's sandbox. Always converges to stopped.

        Raises:
            BundleNotFoundError: If the id is not a valid bundle id.
            SandboxRuntimeError: If the runtime failed to stop the sandbox.
                The instance is stopped and its handle cleared regardless.
        """
        self._bundles.path_for(bundle_id)
        async with self._registry.transition(bundle_id):
            instance = self._registry.get(bundle_id)
            if instance is not None:
                await self._stop_locked(instance)

    async def restart(self, bundle_id: str) -> StartResult:
        """Stop then start a bundle under a single hold of its lock.

        A failed stop aborts the restart.
        """
        bundle_dir = self._bundles.path_for(bundle_id)
        async with self._registry.transition(bundle_id):
            instance = self._registry.get(bundle_id)
            if instance is not None:
                await self._stop_locked(instance)
            return await self._start_locked(bundle_id, bundle_dir)

    async def delete(self, bundle_id: str) -> None:
        """Stop a bundle if needed, then remove its directory and instance.

        The directory is only removed once the sandbox that bind-mounts it
        has been fully stopped.

        Raises:
            BundleNotFoundError: If neither a directory nor an instance exists.
            SandboxRuntimeError: If the stop failed; nothing is deleted.
        """
        bundle_dir = self._bundles.path_for(bundle_id)
        async with self._registry.transition(bundle_id):
            instance = self._registry.get(bundle_id)
            if instance is None and not bundle_dir.is_dir():
                raise BundleNotFoundError(bundle_id)
            if instance is not None:
                await self._stop_locked(instance)
            await asyncio.to_thread(self._bundles.remove, bundle_id)
            self._registry.discard(bundle_id)
        logger.info("Bot deleted", bot_id=bundle_id)

    async def shutdown(self) -> None:
        """Release every instance on process shutdown.

        Stops live sandboxes when ``stop_on_shutdown`` is set; otherwise only
        cancels the tracked tasks and leaves the containers running. Ends
        every log subscription either way.
        """
        instances = self._registry.instances()
        if self._config.stop_on_shutdown:
            live = [i.bundle_id for i in instances if i.handle is not None]
            if live:
                logger.info("Stopping running bots", count=len(live))
            results = await asyncio.gather(
                *(self.stop(bundle_id) for bundle_id in live),
                return_exceptions=True,
            )
            for bundle_id, result in zip(live, results, strict=True):
                if isinstance(result, BaseException):
                    logger.warning("Failed to stop bot on shutdown", bot_id=bundle_id, error=str(result))
        else:
            await asyncio.gather(*(i.cancel_tasks() for i in instances))
        for instance in instances:
            instance.logs.close()

    # ------------------------------------------------------------------
    # Internals (caller holds the bundle lock)
    # ------------------------------------------------------------------

    def _sandbox_spec(self, bundle_id: str, bundle_dir: Path, entry: str) -> SandboxSpec:
        config = self._config
        return SandboxSpec(
            name=f"{config.container_prefix}{bundle_id}",
            image=config.sandbox_image,
            command=[*config.entry_command, entry],
            working_dir=config.container_workdir,
            bind=BindMount(
                host_path=str(bundle_dir.resolve()),
                container_path=config.container_workdir,
                mode="rw",
            ),
            limits=ResourceLimits(
                memory_bytes=config.memory_limit_bytes,
                max_processes=config.pids_limit,
            ),
            network_disabled=True,
            labels={BUNDLE_LABEL: bundle_id},
        )

    async def _start_locked(self, bundle_id: str, bundle_dir: Path) -> StartResult:
        if not bundle_dir.is_dir():
            raise BundleNotFoundError(bundle_id)

        instance = self._registry.get_or_create(bundle_id)
        handle = instance.handle
        if handle is not None and instance.state in (InstanceState.STARTING, InstanceState.RUNNING):
            return StartResult(container_id=handle.container_id, already_running=True)

        instance.mark_starting()
        try:
            entry = await asyncio.to_thread(resolve_entry_point, bundle_dir)
            spec = self._sandbox_spec(bundle_id, bundle_dir, entry)
            handle = await self._runtime.create_and_start(spec)
        except BaseException as exc:
            instance.mark_stopped()
            logger.warning(
                "Bot failed to start",
                bot_id=bundle_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise

        instance.mark_running(handle)
        instance.logs.append(
            f"sandbox started {handle.container_id[:12]} ({' '.join(spec.command)})"
        )
        instance.reader_task = instance.spawn(self._pump_output(instance, handle), "reader")
        instance.watcher_task = instance.spawn(self._watch_exit(instance, handle), "watcher")

        logger.info("Bot started", bot_id=bundle_id, container_id=handle.container_id[:12], entry=entry)
        return StartResult(container_id=handle.container_id)

    async def _stop_locked(self, instance: BotInstance) -> None:
        handle = instance.handle
        if handle is None:
            instance.mark_stopped()
            return

        instance.mark_stopping()
        failure: SandboxRuntimeError | None = None
        try:
            await self._runtime.stop(handle, self._config.stop_grace_seconds)
        except SandboxRuntimeError as exc:
            logger.warning("Bot stop failed", bot_id=instance.bundle_id, error=str(exc))
            failure = exc
        finally:
            await instance.drain_reader(self._config.reader_drain_seconds)
            await instance.cancel_tasks()
            await self._runtime.remove(handle)
            instance.mark_stopped()
            instance.logs.append("sandbox stopped")

        logger.info("Bot stopped", bot_id=instance.bundle_id, container_id=handle.container_id[:12])
        if failure is not None:
            raise SandboxRuntimeError(str(failure), bundle_id=instance.bundle_id) from failure

    async def _pump_output(self, instance: BotInstance, handle: SandboxHandle) -> None:
        """Append every output chunk of a sandbox to its instance's log buffer."""
        try:
            async for chunk in self._runtime.stream_output(handle):
                instance.logs.append(chunk.decode("utf-8", errors="replace").rstrip("\r\n"))
        except (SandboxRuntimeError, OSError, ValueError) as exc:
            logger.warning(
                "Output stream failed",
                bot_id=instance.bundle_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            instance.logs.append(f"log capture failed: {exc}")

    async def _watch_exit(self, instance: BotInstance, handle: SandboxHandle) -> None:
        """Transition to stopped when the sandbox exits on its own."""
        result = await self._runtime.wait(handle)
        async with self._registry.transition(instance.bundle_id):
            if instance.handle is not handle:
                # A stop already handled this sandbox.
                return
            await instance.drain_reader(self._config.reader_drain_seconds)
            instance.logs.append(f"container exited {result.describe()}")
            await self._runtime.remove(handle)
            instance.mark_stopped()
        logger.info(
            "Bot exited",
            bot_id=instance.bundle_id,
            status_code=result.status_code,
            error=result.error,
        )

# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""In-memory registry of bundle instances with per-bundle transition locks."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger

from botyard.core.types import BotStatus, InstanceState
from botyard.sandbox.provider import SandboxHandle
from botyard.server.events.log_buffer import LogBuffer


class BotInstance:
    """Runtime record for a bundle that has been referenced this process.

    Only the lifecycle controller mutates ``state`` and ``handle``; it does
    so through the ``mark_*`` methods, which update both fields together so
    that readers never observe a torn pair.

    Attributes:
        bundle_id: Bundle this instance belongs to.
        logs: Output buffer and live fanout, kept across stop/start cycles.
        reader_task: Task pumping sandbox output into ``logs``.
        watcher_task: Task waiting for the sandbox to exit.
    """

    def __init__(self, bundle_id: str, logs: LogBuffer) -> None:
        self.bundle_id = bundle_id
        self.logs = logs
        self.reader_task: asyncio.Task[None] | None = None
        self.watcher_task: asyncio.Task[None] | None = None
        self._state = InstanceState.STOPPED
        self._handle: SandboxHandle | None = None

    @property
    def state(self) -> InstanceState:
        return self._state

    @property
    def handle(self) -> SandboxHandle | None:
        return self._handle

    def mark_starting(self) -> None:
        self._state = InstanceState.STARTING
        self._handle = None

    def mark_running(self, handle: SandboxHandle) -> None:
        self._state = InstanceState.RUNNING
        self._handle = handle

    def mark_stopping(self) -> None:
        self._state = InstanceState.STOPPING

    def mark_stopped(self) -> None:
        self._state = InstanceState.STOPPED
        self._handle = None

    def status(self) -> BotStatus:
        """Snapshot of state and handle identity."""
        handle = self._handle
        return BotStatus(
            bundle_id=self.bundle_id,
            state=self._state,
            container_id=handle.container_id if handle else None,
        )

    def spawn(
        self,
        coro: Coroutine[Any, Any, None],
        name: str,
    ) -> asyncio.Task[None]:
        """Start a background task owned by this instance."""
        task = asyncio.create_task(coro, name=f"{name}:{self.bundle_id}")
        task.add_done_callback(self._handle_task_done)
        return task

    def _handle_task_done(self, task: asyncio.Task[None]) -> None:
        if task is self.reader_task:
            self.reader_task = None
        elif task is self.watcher_task:
            self.watcher_task = None
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                logger.error(
                    "Instance task failed",
                    bot_id=self.bundle_id,
                    task=task.get_name(),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )

    async def drain_reader(self, timeout: float) -> None:
        """Give the output reader a bounded chance to finish, then cancel it."""
        task = self.reader_task
        if task is None or task is asyncio.current_task():
            return
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def cancel_tasks(self) -> None:
        """Cancel and join the reader and watcher, except the calling task."""
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self.reader_task, self.watcher_task)
            if task is not None and task is not current
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class BotRegistry:
    """Process-wide map of bundle id to instance.

    Owned by the lifecycle controller. Transitions for one bundle are
    serialized by that bundle's lock; different bundles never contend.
    Lookups never take a lock.

    Attributes:
        log_capacity: Line capacity for new instances' buffers.
        replay_size: Replay length for new instances' buffers.
    """

    def __init__(self, log_capacity: int = 2000, replay_size: int = 200) -> None:
        self.log_capacity = log_capacity
        self.replay_size = replay_size
        self._instances: dict[str, BotInstance] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def __contains__(self, bundle_id: object) -> bool:
        return bundle_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def lock(self, bundle_id: str) -> asyncio.Lock:
        """Return the transition lock for a bundle, creating it on first use."""
        lock = self._locks.get(bundle_id)
        if lock is None:
            lock = self._locks.setdefault(bundle_id, asyncio.Lock())
        return lock

    @asynccontextmanager
    async def transition(self, bundle_id: str) -> AsyncIterator[None]:
        """Hold a bundle's lock for one transition.

        The lock is kept while any caller holds or awaits it, or while the
        bundle has an instance. Once neither is true it is dropped, so ids
        that never got an instance, or were deleted, leave nothing behind.
        """
        lock = self.lock(bundle_id)
        self._lock_users[bundle_id] = self._lock_users.get(bundle_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[bundle_id] - 1
            if remaining:
                self._lock_users[bundle_id] = remaining
            else:
                del self._lock_users[bundle_id]
                if bundle_id not in self._instances and self._locks.get(bundle_id) is lock:
                    del self._locks[bundle_id]

    def tracked_locks(self) -> int:
        return len(self._locks)

    def get(self, bundle_id: str) -> BotInstance | None:
        return self._instances.get(bundle_id)

    def get_or_create(self, bundle_id: str) -> BotInstance:
        """Return the bundle's instance, creating a stopped one if absent."""
        instance = self._instances.get(bundle_id)
        if instance is None:
            instance = BotInstance(
                bundle_id,
                LogBuffer(
                    capacity=self.log_capacity,
                    replay_size=self.replay_size,
                    owner=bundle_id,
                ),
            )
            self._instances[bundle_id] = instance
        return instance

    def discard(self, bundle_id: str) -> BotInstance | None:
        """Remove an instance and end its log subscriptions."""
        instance = self._instances.pop(bundle_id, None)
        if instance is not None:
            instance.logs.close()
        return instance

    def instances(self) -> list[BotInstance]:
        return list(self._instances.values())

    def running_count(self) -> int:
        return sum(1 for instance in self._instances.values() if instance.handle is not None)

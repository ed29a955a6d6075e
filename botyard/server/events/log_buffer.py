# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Bounded log buffer with replay-on-subscribe fanout for sandbox output."""
from __future__ import annotations

import asyncio
import threading
import uuid
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime

from loguru import logger


DEFAULT_CAPACITY = 2000
DEFAULT_REPLAY_SIZE = 200


@dataclass(frozen=True)
class LogLine:
    """One captured line of sandbox output.

    Attributes:
        text: Raw line text without trailing newline.
        timestamp: Server capture time (UTC).
    """

    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def render(self) -> str:
        return f"[{self.timestamp.isoformat()}] {self.text}"


class LogSubscription:
    """Live feed of lines appended to a LogBuffer after subscribing.

    Each subscription owns a bounded queue. When a consumer falls behind, the
    oldest queued line is dropped so the producer is never blocked.

    Attributes:
        id: Opaque subscription handle.
        dropped: Lines discarded because the consumer fell behind.
    """

    def __init__(self, maxsize: int) -> None:
        self.id = uuid.uuid4().hex
        self.dropped = 0
        self._queue: asyncio.Queue[LogLine | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _put(self, item: LogLine | None) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self.dropped += 1
            self._queue.put_nowait(item)

    def deliver(self, line: LogLine) -> None:
        """Queue a line without blocking. No-op once closed."""
        if self._closed:
            return
        self._put(line)

    def close(self) -> None:
        """End the feed. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._put(None)

    async def get(self) -> LogLine | None:
        """Wait for the next line. Returns None once the feed has ended."""
        item = await self._queue.get()
        if item is None:
            # Keep the sentinel for any other waiter.
            self._queue.put_nowait(None)
        return item

    def __aiter__(self) -> AsyncIterator[LogLine]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[LogLine]:
        while True:
            line = await self.get()
            if line is None:
                return
            yield line


class LogBuffer:
    """Capacity-bounded ring of timestamped lines with live fanout.

    The buffer and its subscriber set are guarded by an internal lock scoped
    to this buffer only, so subscribing never stalls ingestion of other
    instances. Appending a line and snapshotting the subscriber set happen
    in one critical section, which makes a subscriber's replay and its live
    feed meet without gap or overlap.

    Attributes:
        capacity: Maximum lines retained; oldest are evicted first.
        replay_size: Maximum lines replayed to a new subscriber.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        replay_size: int = DEFAULT_REPLAY_SIZE,
        owner: str | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.replay_size = min(replay_size, capacity)
        self.owner = owner
        self._lines: deque[LogLine] = deque(maxlen=capacity)
        self._subscribers: dict[str, LogSubscription] = {}
        self._lock = threading.Lock()
        self._closed = False

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def lines(self, limit: int | None = None) -> list[LogLine]:
        """Snapshot of retained lines, oldest first.

        Args:
            limit: Return only the most recent ``limit`` lines.
        """
        with self._lock:
            snapshot = list(self._lines)
        if limit is not None:
            return snapshot[-limit:] if limit > 0 else []
        return snapshot

    def append(self, text: str) -> LogLine:
        """Stamp and store a line, then deliver it to every subscriber.

        Delivery failures are logged and swallowed; the failing subscription
        stays registered until it is explicitly unsubscribed.

        Args:
            text: Raw line text.

        Returns:
            The stored line.
        """
        line = LogLine(text=text)
        with self._lock:
            self._lines.append(line)
            targets = list(self._subscribers.values())

        for subscription in targets:
            try:
                subscription.deliver(line)
            except Exception as exc:
                logger.warning(
                    "Log delivery failed",
                    bot_id=self.owner,
                    subscription=subscription.id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        return line

    def subscribe(self) -> tuple[list[LogLine], LogSubscription]:
        """Register a live subscriber and return its replay backlog.

        Returns:
            Tuple of (replay, subscription) where replay holds up to
            ``replay_size`` most recent lines and the subscription receives
            every line appended afterwards. On a closed buffer the
            subscription is already ended.
        """
        subscription = LogSubscription(maxsize=self.capacity)
        with self._lock:
            replay = list(self._lines)[-self.replay_size:]
            if self._closed:
                subscription.close()
            else:
                self._subscribers[subscription.id] = subscription
        return replay, subscription

    def unsubscribe(self, subscription: LogSubscription) -> None:
        """Remove a subscriber. Safe to call repeatedly or after close()."""
        with self._lock:
            self._subscribers.pop(subscription.id, None)
        subscription.close()

    def close(self) -> None:
        """End every live subscription; later subscribers get an ended feed."""
        with self._lock:
            self._closed = True
            targets = list(self._subscribers.values())
            self._subscribers.clear()
        for subscription in targets:
            subscription.close()

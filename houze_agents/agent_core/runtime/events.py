from __future__ import annotations

"""Run progress fan-out.

``RunEventBroadcaster`` is a one-writer-many-readers push channel. The engine
publishes a ``RunEvent`` for every status change, appended turn and appended
run log; subscribers (for example the SSE endpoint) receive them through a
bounded per-subscriber queue.

Publishing never blocks the engine: when a subscriber's queue is full the
event is dropped for that subscriber only and a warning is logged. The store
stays the source of truth, so a slow subscriber can always resync with
``get_run``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from ...core.logging_config import get_logger
from ..schemas.domain import RunEvent

logger = get_logger(__name__)


class Subscription:
    """A single subscriber's view of the event stream."""

    def __init__(self, run_id: Optional[str], maxsize: int) -> None:
        self.run_id = run_id
        self._queue: asyncio.Queue[RunEvent] = asyncio.Queue(maxsize=maxsize)

    def wants(self, event: RunEvent) -> bool:
        return self.run_id is None or self.run_id == event.run_id

    def offer(self, event: RunEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self, timeout: Optional[float] = None) -> Optional[RunEvent]:
        """Return the next event, or ``None`` when ``timeout`` elapses first."""
        if timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> RunEvent:
        return await self._queue.get()


class RunEventBroadcaster:
    """Fan out ``RunEvent`` objects to any number of subscribers."""

    def __init__(self, *, subscriber_queue_size: int = 256) -> None:
        self._subscribers: List[Subscription] = []
        self._queue_size = subscriber_queue_size

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: RunEvent) -> None:
        for sub in list(self._subscribers):
            if sub.wants(event) and not sub.offer(event):
                logger.warning("Dropping %s event for slow subscriber of run %s", event.type.value, event.run_id)

    @asynccontextmanager
    async def subscribe(self, run_id: Optional[str] = None) -> AsyncIterator[Subscription]:
        """Subscribe to events of one run, or of all runs when ``run_id`` is None."""
        sub = Subscription(run_id, self._queue_size)
        self._subscribers.append(sub)
        try:
            yield sub
        finally:
            self._subscribers.remove(sub)

"""Best-effort ingestion sink for metric and activity events.

Every ``record*`` method on MetricSink is declared never to raise: storage
failures are logged and dropped so that telemetry can't fail or slow down
the operation it observes. Delivery is at-most-once with no retry.
"""

import asyncio
import logging
from collections.abc import Iterable

from pagepulse.core.models import ActivityEvent, MetricEvent
from pagepulse.core.ports import ActivityStoragePort, MetricEventStoragePort

logger = logging.getLogger(__name__)


class MetricSink:
    """Append-only write path in front of the storage ports.

    Args:
        storage: Where metric events are persisted.
        activity_storage: Where activity pings are persisted. Activity is
            dropped (with a debug log) when not configured.
    """

    def __init__(
        self,
        storage: MetricEventStoragePort,
        activity_storage: ActivityStoragePort | None = None,
    ) -> None:
        self.storage = storage
        self.activity_storage = activity_storage
        self._pending: set[asyncio.Task[None]] = set()

    async def record(self, event: MetricEvent) -> None:
        """Persist one event. Never raises."""
        try:
            await self.storage.write(event)
        except Exception:
            logger.warning(
                "Dropping metric event %s/%s", event.kind, event.name, exc_info=True
            )

    async def record_batch(self, events: Iterable[MetricEvent]) -> None:
        """Persist events concurrently. Never raises.

        A failing write is logged by ``record`` and does not affect the others.
        """
        await asyncio.gather(*(self.record(event) for event in events))

    def record_nowait(self, event: MetricEvent) -> None:
        """Schedule ``record`` in the background and return immediately.

        Must be called from within a running event loop.
        """
        self._spawn(self.record(event))

    async def record_activity(self, event: ActivityEvent) -> None:
        """Persist one activity ping. Never raises."""
        if self.activity_storage is None:
            logger.debug("No activity storage configured, dropping %s", event.route)
            return
        try:
            await self.activity_storage.write(event)
        except Exception:
            logger.warning(
                "Dropping activity event %s %s", event.action, event.route, exc_info=True
            )

    async def record_activity_batch(self, events: Iterable[ActivityEvent]) -> None:
        """Persist activity pings concurrently. Never raises."""
        await asyncio.gather(*(self.record_activity(event) for event in events))

    @property
    def pending(self) -> int:
        """Number of background writes not yet finished."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every background write scheduled so far."""
        while self._pending:
            await asyncio.gather(*self._pending)

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

"""In-memory storage adapters for metric and activity events."""

import re
from collections.abc import AsyncIterable

from pagepulse.core.models import ActivityAction, ActivityEvent, MetricEvent
from pagepulse.core.ports import EventFilter


def _search(pattern: str | None, value: str | None) -> bool:
    if pattern is None:
        return True
    if value is None:
        return False
    return re.search(pattern, value, re.IGNORECASE) is not None


def matches(event: MetricEvent, event_filter: EventFilter | None) -> bool:
    """Return True if the event satisfies every criterion of the filter."""
    if event_filter is None:
        return True
    if event_filter.kinds is not None and event.kind not in event_filter.kinds:
        return False
    if event_filter.since is not None and event.created_at < event_filter.since:
        return False
    if event_filter.until is not None and event.created_at >= event_filter.until:
        return False
    return _search(event_filter.name_pattern, event.name) and _search(
        event_filter.path_pattern, event.path
    )


class InMemoryMetricEventStorage:
    """In-memory implementation of MetricEventStoragePort.

    Stores events in a list. Suitable for testing and
    low-volume applications where persistence is not required.
    """

    def __init__(self) -> None:
        self._events: list[MetricEvent] = []

    async def write(self, event: MetricEvent) -> None:
        """Append one event."""
        self._events.append(event)

    async def read(
        self,
        event_filter: EventFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> AsyncIterable[MetricEvent]:
        """Read matching events ordered by created_at."""
        filtered = [e for e in self._events if matches(e, event_filter)]
        ordered = sorted(filtered, key=lambda e: e.created_at, reverse=newest_first)
        end = None if limit is None else offset + limit
        for event in ordered[offset:end]:
            yield event

    async def count(self, event_filter: EventFilter | None = None) -> int:
        """Return the number of matching events."""
        return sum(1 for e in self._events if matches(e, event_filter))

    async def delete_before(self, timestamp: float) -> int:
        """Delete events with created_at < timestamp."""
        before = len(self._events)
        self._events = [e for e in self._events if e.created_at >= timestamp]
        return before - len(self._events)

    async def close(self) -> None:
        """Nothing to release."""


class InMemoryActivityStorage:
    """In-memory implementation of ActivityStoragePort."""

    def __init__(self) -> None:
        self._events: list[ActivityEvent] = []

    async def write(self, event: ActivityEvent) -> None:
        self._events.append(event)

    async def read(
        self,
        since: float | None = None,
        until: float | None = None,
        action: ActivityAction | None = None,
    ) -> AsyncIterable[ActivityEvent]:
        filtered = [
            e
            for e in self._events
            if (since is None or e.created_at >= since)
            and (until is None or e.created_at < until)
            and (action is None or e.action == action)
        ]
        for event in sorted(filtered, key=lambda e: e.created_at):
            yield event

    async def delete_before(self, timestamp: float) -> int:
        before = len(self._events)
        self._events = [e for e in self._events if e.created_at >= timestamp]
        return before - len(self._events)

    async def close(self) -> None:
        """Nothing to release."""

"""Port interfaces for storage adapters.

These protocols define the contracts that storage adapters must implement.
The core domain depends only on these interfaces, not concrete implementations.
"""

from collections.abc import AsyncIterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from pagepulse.core.models import ActivityAction, ActivityEvent, MetricEvent, MetricKind


@dataclass(frozen=True)
class EventFilter:
    """Selection criteria shared by storage reads and counts.

    Attributes:
        kinds: Only events of these kinds. None matches every kind.
        name_pattern: Case-insensitive regular expression searched in name.
        path_pattern: Case-insensitive regular expression searched in path.
        since: Only events with created_at >= since.
        until: Only events with created_at < until.
    """

    kinds: tuple[MetricKind, ...] | None = None
    name_pattern: str | None = None
    path_pattern: str | None = None
    since: float | None = None
    until: float | None = None


@runtime_checkable
class MetricEventStoragePort(Protocol):
    """Port for the append-only metric event store.

    Examples: InMemoryMetricEventStorage, SQLiteMetricEventStorage.
    """

    async def write(self, event: MetricEvent) -> None:
        """Append one event."""
        ...

    def read(
        self,
        event_filter: EventFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> AsyncIterable[MetricEvent]:
        """Read matching events ordered by created_at.

        Args:
            event_filter: Selection criteria. None returns all events.
            offset: Number of matching events to skip.
            limit: Maximum number of events to return. None is unbounded.
            newest_first: Order by created_at descending instead of ascending.
        """
        ...

    async def count(self, event_filter: EventFilter | None = None) -> int:
        """Return the number of matching events."""
        ...

    async def delete_before(self, timestamp: float) -> int:
        """Delete events with created_at < timestamp. Retention only."""
        ...


@runtime_checkable
class ActivityStoragePort(Protocol):
    """Port for the activity ping store."""

    async def write(self, event: ActivityEvent) -> None:
        """Append one activity event."""
        ...

    def read(
        self,
        since: float | None = None,
        until: float | None = None,
        action: ActivityAction | None = None,
    ) -> AsyncIterable[ActivityEvent]:
        """Read activity events in the window, ordered by created_at."""
        ...

    async def delete_before(self, timestamp: float) -> int:
        """Delete activity events with created_at < timestamp."""
        ...

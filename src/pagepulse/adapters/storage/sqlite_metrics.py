"""SQLite storage adapter for metric events."""

import json
from collections.abc import AsyncIterable
from typing import Any

import aiosqlite

from pagepulse.adapters.storage.sqlite_base import (
    AsyncConnectionManager,
    _safe_json_loads,
)
from pagepulse.core.models import MetricEvent, MetricKind
from pagepulse.core.ports import EventFilter

_METRIC_EVENTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS metric_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    duration_ms REAL,
    path TEXT,
    method TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_metric_events_kind_name_created
    ON metric_events(kind, name, created_at);
CREATE INDEX IF NOT EXISTS idx_metric_events_path_created
    ON metric_events(path, created_at);
CREATE INDEX IF NOT EXISTS idx_metric_events_created ON metric_events(created_at);
"""

_INSERT_EVENT = """
INSERT INTO metric_events (kind, name, duration_ms, path, method, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_EVENTS = """
SELECT kind, name, duration_ms, path, method, metadata, created_at
FROM metric_events
"""

_COUNT_EVENTS = """
SELECT COUNT(*) FROM metric_events
"""

_DELETE_EVENTS_BEFORE = """
DELETE FROM metric_events WHERE created_at < ?
"""


def _where_clause(event_filter: EventFilter | None) -> tuple[str, list[Any]]:
    """Translate an EventFilter into a WHERE clause and its parameters."""
    if event_filter is None:
        return "", []
    conditions: list[str] = []
    params: list[Any] = []
    if event_filter.kinds is not None:
        placeholders = ", ".join("?" for _ in event_filter.kinds)
        conditions.append(f"kind IN ({placeholders})")
        params.extend(kind.value for kind in event_filter.kinds)
    if event_filter.name_pattern is not None:
        conditions.append("name REGEXP ?")
        params.append(event_filter.name_pattern)
    if event_filter.path_pattern is not None:
        conditions.append("path REGEXP ?")
        params.append(event_filter.path_pattern)
    if event_filter.since is not None:
        conditions.append("created_at >= ?")
        params.append(event_filter.since)
    if event_filter.until is not None:
        conditions.append("created_at < ?")
        params.append(event_filter.until)
    if not conditions:
        return "", []
    return " WHERE " + " AND ".join(conditions), params


def _from_row(row: aiosqlite.Row | tuple[Any, ...]) -> MetricEvent:
    return MetricEvent(
        kind=MetricKind(row[0]),
        name=row[1],
        duration_ms=row[2],
        path=row[3],
        method=row[4],
        metadata=_safe_json_loads(row[5]),
        created_at=row[6],
    )


class SQLiteMetricEventStorage:
    """SQLite implementation of MetricEventStoragePort.

    Stores metric events in a single append-only table using aiosqlite for
    non-blocking async operations. Uses WAL mode for concurrent access.
    Name and path filters are evaluated with a case-insensitive REGEXP
    function registered on every connection.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _METRIC_EVENTS_SCHEMA)

    async def write(self, event: MetricEvent) -> None:
        """Append one event."""
        async with self._manager.connection() as db:
            await db.execute(
                _INSERT_EVENT,
                (
                    event.kind.value,
                    event.name,
                    event.duration_ms,
                    event.path,
                    event.method,
                    json.dumps(event.metadata, default=str),
                    event.created_at,
                ),
            )
            await db.commit()

    async def read(
        self,
        event_filter: EventFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> AsyncIterable[MetricEvent]:
        """Read matching events ordered by created_at."""
        where, params = _where_clause(event_filter)
        order = "DESC" if newest_first else "ASC"
        query = f"{_SELECT_EVENTS}{where} ORDER BY created_at {order}, id {order}"
        if limit is not None or offset:
            query += " LIMIT ? OFFSET ?"
            params = [*params, -1 if limit is None else limit, offset]
        async with self._manager.connection() as db:
            async with db.execute(query, params) as cursor:
                async for row in cursor:
                    yield _from_row(row)

    async def count(self, event_filter: EventFilter | None = None) -> int:
        """Return the number of matching events."""
        where, params = _where_clause(event_filter)
        async with self._manager.connection() as db:
            async with db.execute(_COUNT_EVENTS + where, params) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def delete_before(self, timestamp: float) -> int:
        """Delete events with created_at < timestamp."""
        async with self._manager.connection() as db:
            cursor = await db.execute(_DELETE_EVENTS_BEFORE, (timestamp,))
            deleted = cursor.rowcount
            await db.commit()
            return deleted

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._manager.close()

"""SQLite storage adapter for activity pings."""

import json
from collections.abc import AsyncIterable
from typing import Any

from pagepulse.adapters.storage.sqlite_base import (
    AsyncConnectionManager,
    _safe_json_loads,
)
from pagepulse.core.models import ActivityAction, ActivityEvent, ActivityRole

_ACTIVITY_SCHEMA = """
CREATE TABLE IF NOT EXISTS activity_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    role TEXT NOT NULL,
    action TEXT NOT NULL,
    route TEXT NOT NULL,
    ip TEXT NOT NULL,
    user_agent TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_activity_logs_created ON activity_logs(created_at);
CREATE INDEX IF NOT EXISTS idx_activity_logs_route_created
    ON activity_logs(route, created_at);
"""

_INSERT_ACTIVITY = """
INSERT INTO activity_logs
    (user_id, role, action, route, ip, user_agent, metadata, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_ACTIVITY = """
SELECT user_id, role, action, route, ip, user_agent, metadata, created_at
FROM activity_logs
"""

_DELETE_ACTIVITY_BEFORE = """
DELETE FROM activity_logs WHERE created_at < ?
"""


class SQLiteActivityStorage:
    """SQLite implementation of ActivityStoragePort."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _ACTIVITY_SCHEMA)

    async def write(self, event: ActivityEvent) -> None:
        async with self._manager.connection() as db:
            await db.execute(
                _INSERT_ACTIVITY,
                (
                    event.user_id,
                    event.role.value,
                    event.action.value,
                    event.route,
                    event.ip,
                    event.user_agent,
                    json.dumps(event.metadata, default=str),
                    event.created_at,
                ),
            )
            await db.commit()

    async def read(
        self,
        since: float | None = None,
        until: float | None = None,
        action: ActivityAction | None = None,
    ) -> AsyncIterable[ActivityEvent]:
        conditions: list[str] = []
        params: list[Any] = []
        if since is not None:
            conditions.append("created_at >= ?")
            params.append(since)
        if until is not None:
            conditions.append("created_at < ?")
            params.append(until)
        if action is not None:
            conditions.append("action = ?")
            params.append(action.value)
        query = _SELECT_ACTIVITY
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at ASC, id ASC"
        async with self._manager.connection() as db:
            async with db.execute(query, params) as cursor:
                async for row in cursor:
                    yield ActivityEvent(
                        user_id=row[0],
                        role=ActivityRole(row[1]),
                        action=ActivityAction(row[2]),
                        route=row[3],
                        ip=row[4],
                        user_agent=row[5],
                        metadata=_safe_json_loads(row[6]),
                        created_at=row[7],
                    )

    async def delete_before(self, timestamp: float) -> int:
        async with self._manager.connection() as db:
            cursor = await db.execute(_DELETE_ACTIVITY_BEFORE, (timestamp,))
            deleted = cursor.rowcount
            await db.commit()
            return deleted

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._manager.close()

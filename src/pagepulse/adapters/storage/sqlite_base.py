"""Connection management shared by the SQLite storage adapters."""

import asyncio
import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite


def _safe_json_loads(
    data: str | None, default: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Safely parse JSON data, returning default on decode error.

    Args:
        data: JSON string to parse.
        default: Value to return if parsing fails. Defaults to empty dict.

    Returns:
        Parsed JSON as dict, or default if parsing fails.
    """
    if default is None:
        default = {}
    if not data:
        return default
    try:
        result = json.loads(data)
    except json.JSONDecodeError:
        return default
    return result if isinstance(result, dict) else default


def _regexp(pattern: str, value: str | None) -> bool:
    """SQLite REGEXP implementation (case-insensitive search)."""
    if value is None:
        return False
    return re.search(pattern, value, re.IGNORECASE) is not None


class AsyncConnectionManager:
    """Manages async (aiosqlite) database connections.

    Handles schema initialization and connection lifecycle. The schema is
    applied lazily on first use. For :memory: databases a single connection
    is opened and reused for the lifetime of the manager, since SQLite
    in-memory databases are connection-scoped; file databases get a fresh
    WAL-mode connection per operation.

    Re-initialization after close() is not supported.
    """

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._initialized = False
        self._closed = False
        self._init_lock: asyncio.Lock | None = None
        self._persistent_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        return self._init_lock

    @property
    def _is_memory(self) -> bool:
        return self._db_path == ":memory:"

    async def _open(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self._db_path)
        await db.create_function("regexp", 2, _regexp)
        return db

    async def _ensure_initialized(self) -> None:
        """Initialize database schema once."""
        if self._initialized:
            return
        async with self._get_lock():
            if self._initialized:
                return
            if self._closed:
                raise RuntimeError("Connection manager has been closed")
            if self._is_memory:
                self._persistent_conn = await self._open()
                await self._persistent_conn.executescript(self._schema)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(self._schema)
            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for async database connections.

        Automatically closes connections for file-based databases.
        For :memory: databases, keeps the shared connection open.
        """
        await self._ensure_initialized()
        if self._is_memory:
            if self._persistent_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._persistent_conn
            return
        db = await self._open()
        try:
            yield db
        finally:
            await db.close()

    async def close(self) -> None:
        """Close the persistent connection (for :memory: databases)."""
        self._closed = True
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None

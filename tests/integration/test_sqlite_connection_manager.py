"""Tests for the shared SQLite connection manager."""

import pytest

from pagepulse.adapters.storage.sqlite_base import (
    AsyncConnectionManager,
    _regexp,
    _safe_json_loads,
)

pytestmark = [pytest.mark.integration, pytest.mark.storage, pytest.mark.tier(2)]

SCHEMA = "CREATE TABLE IF NOT EXISTS t (v TEXT);"


class TestSafeJsonLoads:
    def test_valid_object(self) -> None:
        assert _safe_json_loads('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("data", [None, "", "not json", "[1, 2]"])
    def test_falls_back_to_empty_dict(self, data) -> None:
        assert _safe_json_loads(data) == {}


class TestRegexp:
    def test_case_insensitive_search(self) -> None:
        assert _regexp("article", "GET /api/ARTICLES")

    def test_null_never_matches(self) -> None:
        assert not _regexp(".", None)


async def test_memory_database_keeps_one_connection() -> None:
    manager = AsyncConnectionManager(":memory:", SCHEMA)

    async with manager.connection() as db:
        await db.execute("INSERT INTO t VALUES ('x')")
        await db.commit()
    async with manager.connection() as db:
        async with db.execute("SELECT COUNT(*) FROM t") as cursor:
            row = await cursor.fetchone()

    assert row[0] == 1
    await manager.close()


async def test_file_database_uses_wal(metrics_db_path) -> None:
    manager = AsyncConnectionManager(metrics_db_path, SCHEMA)

    async with manager.connection() as db:
        async with db.execute("PRAGMA journal_mode") as cursor:
            row = await cursor.fetchone()

    assert row[0].lower() == "wal"
    await manager.close()


async def test_regexp_function_is_registered(metrics_db_path) -> None:
    manager = AsyncConnectionManager(metrics_db_path, SCHEMA)

    async with manager.connection() as db:
        async with db.execute("SELECT 'Hello' REGEXP 'hel'") as cursor:
            row = await cursor.fetchone()

    assert row[0] == 1
    await manager.close()


async def test_closed_manager_cannot_reinitialize() -> None:
    manager = AsyncConnectionManager(":memory:", SCHEMA)
    await manager.close()

    with pytest.raises(RuntimeError, match="closed"):
        async with manager.connection():
            pass

"""Storage adapters implementing core ports."""

from pagepulse.adapters.storage.in_memory import (
    InMemoryActivityStorage,
    InMemoryMetricEventStorage,
)
from pagepulse.adapters.storage.sqlite_activity import SQLiteActivityStorage
from pagepulse.adapters.storage.sqlite_metrics import SQLiteMetricEventStorage

__all__ = [
    "InMemoryActivityStorage",
    "InMemoryMetricEventStorage",
    "SQLiteActivityStorage",
    "SQLiteMetricEventStorage",
]

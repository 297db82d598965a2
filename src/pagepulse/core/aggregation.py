"""Read-side aggregation of stored events into dashboard summaries.

All functions are pure: the same events always produce the same output,
in a deterministic order. Empty groups and empty buckets are omitted;
nothing is padded with placeholder data.
"""

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from pagepulse.core.models import (
    ActivityAction,
    ActivityEvent,
    ApiLatency,
    DbDurationPoint,
    MetricEvent,
    MetricKind,
    PageViewCount,
    RequestRate,
)


def percentile(values: Sequence[float], pct: float) -> float:
    """Lower-index percentile over the sorted observations.

    Takes the value at index ``int(pct * (n - 1))``, clamped to the valid
    range, so p95 of [10, 20, ..., 100] is 90. No interpolation: with two
    values every percentile below 1.0 is the smaller one.

    Args:
        values: Observations. Need not be sorted.
        pct: Fraction between 0 and 1 (0.95 for p95).

    Raises:
        ValueError: If values is empty.
    """
    if not values:
        raise ValueError("percentile of an empty sequence")
    ordered = sorted(values)
    index = int(pct * (len(ordered) - 1))
    return ordered[min(max(index, 0), len(ordered) - 1)]


def bucket_start(timestamp: float, bucket_seconds: float) -> float:
    """Floor a timestamp to the start of its bucket."""
    if bucket_seconds <= 0:
        raise ValueError("bucket_seconds must be positive")
    return math.floor(timestamp / bucket_seconds) * bucket_seconds


def format_bucket(timestamp: float) -> str:
    """Format a bucket start as ISO 8601 UTC (e.g. "2026-01-17T10:00:00Z")."""
    return datetime.fromtimestamp(timestamp, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def api_latency(events: Iterable[MetricEvent]) -> list[ApiLatency]:
    """Per-path API latency: count, mean and p95 of duration_ms.

    Events are grouped by path, falling back to name when path is absent.
    Events without a duration are ignored.
    """
    groups: dict[str, list[float]] = defaultdict(list)
    for event in events:
        if event.kind != MetricKind.API or event.duration_ms is None:
            continue
        groups[event.path or event.name].append(event.duration_ms)
    return [
        ApiLatency(
            path=key,
            count=len(durations),
            avg_duration=sum(durations) / len(durations),
            p95_duration=percentile(durations, 0.95),
        )
        for key, durations in sorted(groups.items())
        if durations
    ]


def db_duration_series(
    events: Iterable[MetricEvent], bucket_seconds: float = 60
) -> list[DbDurationPoint]:
    """Average DB operation duration per (name, time bucket).

    Sorted by bucket, then name, so each operation name traces one line
    across time.
    """
    groups: dict[tuple[float, str], list[float]] = defaultdict(list)
    for event in events:
        if event.kind != MetricKind.DB or event.duration_ms is None:
            continue
        key = (bucket_start(event.created_at, bucket_seconds), event.name)
        groups[key].append(event.duration_ms)
    return [
        DbDurationPoint(
            bucket=format_bucket(start),
            name=name,
            avg_duration=sum(durations) / len(durations),
            count=len(durations),
        )
        for (start, name), durations in sorted(groups.items())
    ]


def page_view_counts(
    events: Iterable[MetricEvent],
    activities: Iterable[ActivityEvent] = (),
) -> list[PageViewCount]:
    """Page views per route from navigation events and view pings.

    Sorted by count descending, then route.
    """
    counts: dict[str, int] = defaultdict(int)
    for event in events:
        if event.kind == MetricKind.NAVIGATION:
            counts[event.path or event.name] += 1
    for activity in activities:
        if activity.action == ActivityAction.VIEW:
            counts[activity.route] += 1
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [PageViewCount(route=route, count=count) for route, count in ranked]


def request_rate(
    events: Iterable[MetricEvent], bucket_seconds: float = 60
) -> list[RequestRate]:
    """Number of events of any kind per time bucket, oldest first."""
    counts: dict[float, int] = defaultdict(int)
    for event in events:
        counts[bucket_start(event.created_at, bucket_seconds)] += 1
    return [
        RequestRate(bucket=format_bucket(start), count=count)
        for start, count in sorted(counts.items())
    ]

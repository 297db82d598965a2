"""JSON and NDJSON encoders for events and aggregation results."""

import json
from collections.abc import AsyncIterable
from dataclasses import asdict
from typing import Any

from pagepulse.core.models import ActivityEvent, MetricEvent


def encode_event(event: MetricEvent) -> dict[str, Any]:
    """Encode a metric event as a JSON-compatible dict."""
    return {
        "type": event.kind.value,
        "name": event.name,
        "duration": event.duration_ms,
        "path": event.path,
        "method": event.method,
        "metadata": event.metadata,
        "createdAt": event.created_at,
    }


def encode_activity(event: ActivityEvent) -> dict[str, Any]:
    """Encode an activity event as a JSON-compatible dict."""
    return {
        "userId": event.user_id,
        "role": event.role.value,
        "action": event.action.value,
        "route": event.route,
        "ip": event.ip,
        "userAgent": event.user_agent,
        "metadata": event.metadata,
        "createdAt": event.created_at,
    }


def encode_summary(item: Any) -> dict[str, Any]:
    """Encode an aggregation result dataclass with camelCase keys."""
    return {_camel(key): value for key, value in asdict(item).items()}


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


async def encode_ndjson(events: AsyncIterable[MetricEvent]) -> str:
    """Encode metric events to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no events.
    """
    lines = [json.dumps(encode_event(event), default=str) async for event in events]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"

"""Core domain models for telemetry data."""

import math
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class MetricValidationError(ValueError):
    """Raised when a metric or activity event fails validation."""


class MetricKind(StrEnum):
    """Fixed set of metric event kinds.

    ``FRONTEND`` is the legacy name for browser-reported Web Vitals; a type
    filter on either one matches both.
    """

    FRONTEND = "frontend"
    WEBVITAL = "webvital"
    NAVIGATION = "navigation"
    API = "api"
    DB = "db"


WEB_VITAL_KINDS = (MetricKind.FRONTEND, MetricKind.WEBVITAL)


class ActivityRole(StrEnum):
    GUEST = "guest"
    EDITOR = "editor"
    ADMIN = "admin"


class ActivityAction(StrEnum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class MetricEvent:
    """One immutable timestamped observation.

    Attributes:
        kind: Which family of measurement this is.
        name: Operation name, route (e.g. "GET /api/articles") or vital name.
        created_at: Unix timestamp in seconds, set at ingestion.
        duration_ms: Elapsed time in milliseconds, if the event is timed.
        path: Request path or route used for grouping.
        method: HTTP method, api events only.
        metadata: Free-form side facts (status code, collection, vital id...).
    """

    kind: MetricKind
    name: str
    created_at: float
    duration_ms: float | None = None
    path: str | None = None
    method: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActivityEvent:
    """A page-view or content activity ping.

    Attributes:
        role: Role of the acting user, ``guest`` when anonymous.
        action: What the user did.
        route: Route the action happened on.
        created_at: Unix timestamp in seconds.
        user_id: Authenticated user id, if any.
        ip: Client address as seen by the ingest endpoint.
        user_agent: Client user agent string.
        metadata: Free-form side facts.
    """

    role: ActivityRole
    action: ActivityAction
    route: str
    created_at: float
    user_id: str | None = None
    ip: str = "0.0.0.0"
    user_agent: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RetentionPolicy:
    """How long stored events are kept.

    Attributes:
        max_age_seconds: Events older than this are deleted. None keeps
            everything.
    """

    max_age_seconds: float | None = None

    def cutoff(self, now: float) -> float | None:
        """Return the timestamp before which events expire, or None."""
        if self.max_age_seconds is None:
            return None
        return now - self.max_age_seconds


def _coerce_enum(enum_type: type[StrEnum], value: Any, field_name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise MetricValidationError(
            f"{field_name} must be one of: {allowed} (got {value!r})"
        ) from None


def _require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise MetricValidationError(f"{field_name} must be a non-empty string")
    return value


def create_metric_event(
    kind: MetricKind | str,
    name: str,
    *,
    duration_ms: float | None = None,
    path: str | None = None,
    method: str | None = None,
    metadata: dict[str, Any] | None = None,
    created_at: float | None = None,
) -> MetricEvent:
    """Validate and build a MetricEvent.

    Only ``kind``, ``name`` and the sign of ``duration_ms`` are checked;
    everything else passes through as given.

    Args:
        kind: One of MetricKind, or its string value.
        name: Non-empty event name.
        duration_ms: Optional finite, non-negative elapsed time in milliseconds.
        path: Optional request path.
        method: Optional HTTP method.
        metadata: Optional free-form key/value map.
        created_at: Timestamp override; defaults to now.

    Returns:
        A frozen MetricEvent.

    Raises:
        MetricValidationError: If kind, name or duration is invalid.
    """
    metric_kind = _coerce_enum(MetricKind, kind, "kind")
    _require_text(name, "name")
    if duration_ms is not None:
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int | float):
            raise MetricValidationError("duration must be a number")
        if not math.isfinite(duration_ms):
            raise MetricValidationError("duration must be finite")
        if duration_ms < 0:
            raise MetricValidationError("duration must be non-negative")
        duration_ms = float(duration_ms)
    return MetricEvent(
        kind=metric_kind,
        name=name,
        created_at=time.time() if created_at is None else created_at,
        duration_ms=duration_ms,
        path=path,
        method=method,
        metadata=dict(metadata or {}),
    )


def create_activity_event(
    role: ActivityRole | str,
    action: ActivityAction | str,
    route: str,
    *,
    user_id: str | None = None,
    ip: str = "0.0.0.0",
    user_agent: str = "",
    metadata: dict[str, Any] | None = None,
    created_at: float | None = None,
) -> ActivityEvent:
    """Validate and build an ActivityEvent.

    Raises:
        MetricValidationError: If role, action or route is invalid.
    """
    return ActivityEvent(
        role=_coerce_enum(ActivityRole, role, "role"),
        action=_coerce_enum(ActivityAction, action, "action"),
        route=_require_text(route, "route"),
        created_at=time.time() if created_at is None else created_at,
        user_id=user_id,
        ip=ip,
        user_agent=user_agent,
        metadata=dict(metadata or {}),
    )


@dataclass(frozen=True)
class ApiLatency:
    """Latency summary for one API path."""

    path: str
    count: int
    avg_duration: float
    p95_duration: float


@dataclass(frozen=True)
class DbDurationPoint:
    """Average duration of one DB operation within one time bucket.

    Attributes:
        bucket: ISO 8601 UTC start of the bucket (e.g. "2026-01-17T10:00:00Z").
        name: Operation name.
        avg_duration: Mean duration in milliseconds.
        count: Number of events in the bucket.
    """

    bucket: str
    name: str
    avg_duration: float
    count: int


@dataclass(frozen=True)
class PageViewCount:
    route: str
    count: int


@dataclass(frozen=True)
class RequestRate:
    bucket: str
    count: int

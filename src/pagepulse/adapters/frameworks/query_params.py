"""Shared query parameter parsing utilities for framework adapters."""

import math


def _parse_timestamp_param(value: str | None) -> float | None:
    """Parse and validate a 'since' or 'until' query parameter.

    Args:
        value: Raw query string value.

    Returns:
        Timestamp as float, or None if missing or invalid.
        Rejects negative, NaN, and infinite values.
    """
    if value is None:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    if parsed < 0 or math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


MIN_BUCKET_SECONDS = 1.0


def _parse_bucket_param(value: str | None, default: float = 60.0) -> float:
    """Parse the bucket width in seconds.

    Falls back to default if invalid or shorter than MIN_BUCKET_SECONDS.
    """
    parsed = _parse_timestamp_param(value)
    if parsed is None or parsed < MIN_BUCKET_SECONDS:
        return default
    return parsed

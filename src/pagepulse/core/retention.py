"""Retention enforcement for the metric and activity stores."""

import logging
import time

from pagepulse.core.models import RetentionPolicy
from pagepulse.core.ports import ActivityStoragePort, MetricEventStoragePort

logger = logging.getLogger(__name__)


async def enforce_retention(
    storage: MetricEventStoragePort,
    policy: RetentionPolicy,
    activity_storage: ActivityStoragePort | None = None,
    now: float | None = None,
) -> int:
    """Delete events older than the policy allows.

    Args:
        storage: Metric event store to prune.
        policy: Retention policy. A policy without max age deletes nothing.
        activity_storage: Activity store to prune with the same cutoff.
        now: Reference time, defaults to the current time.

    Returns:
        Total number of deleted rows across both stores.
    """
    cutoff = policy.cutoff(time.time() if now is None else now)
    if cutoff is None:
        return 0
    deleted = await storage.delete_before(cutoff)
    if activity_storage is not None:
        deleted += await activity_storage.delete_before(cutoff)
    logger.info("Retention removed %d events older than %.0f", deleted, cutoff)
    return deleted

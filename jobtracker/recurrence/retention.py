"""Cleanup of completed recurring instances."""

from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger

from ..jobs.types import utcnow
from ..store.base import JobStore


DEFAULT_RETENTION = timedelta(days=30)


async def retire_stale_instances(
    store: JobStore,
    retention_window: timedelta = DEFAULT_RETENTION,
    now: datetime | None = None,
) -> int:
    """Delete generated instances completed longer than ``retention_window`` ago.

    Templates and one-off jobs are never touched.
    """
    cutoff = (now or utcnow()) - retention_window
    removed = await store.delete_completed_instances(cutoff)
    if removed:
        logger.info(f"Retired {removed} completed instance(s) older than {cutoff.isoformat()}")
    return removed

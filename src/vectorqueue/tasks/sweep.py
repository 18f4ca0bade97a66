"""Retention sweep for suspended and poisoned tasks."""

import asyncio
import logging
import random
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.config import settings
from vectorqueue.db.repositories import TrainingTaskRepository
from vectorqueue.observability.metrics import metrics
from vectorqueue.utils.time import utc_now

logger = logging.getLogger("vectorqueue.sweep")

_sweep_task: Optional[asyncio.Task] = None
_shutdown_event: Optional[asyncio.Event] = None


async def sweep_paused_tasks(
    session_factory: async_sessionmaker[AsyncSession],
    retention: timedelta,
    batch_size: int = 500,
) -> int:
    """
    Delete suspended/poisoned tasks parked for longer than ``retention``.

    This is housekeeping, not queue polling: live and leased tasks are never
    touched, and nothing is claimed.
    """
    cutoff = utc_now() - retention
    total = 0
    while True:
        async with session_factory() as session:
            deleted = await TrainingTaskRepository(session).delete_paused_before(
                cutoff, limit=batch_size
            )
            await session.commit()
        total += deleted
        if deleted < batch_size:
            break

    if total:
        metrics.inc("sweep.tasks.deleted", total)
    return total


async def retention_sweep_loop(session_factory: async_sessionmaker[AsyncSession]):
    """Background loop running the retention sweep with a jittered interval."""
    base_interval = settings.retention_sweep_interval_seconds
    retention = timedelta(days=settings.paused_task_retention_days)
    logger.info(
        f"Retention sweep started (interval {base_interval}s, retention {retention.days}d)"
    )

    while not _shutdown_event.is_set():
        try:
            deleted = await sweep_paused_tasks(session_factory, retention)
            if deleted > 0:
                logger.info(f"Deleted {deleted} expired suspended/poisoned tasks")
        except Exception as e:
            logger.error(f"Retention sweep error: {e}", exc_info=True)

        # ±20% so several instances do not sweep in lockstep
        jittered_interval = base_interval * random.uniform(0.8, 1.2)

        try:
            await asyncio.wait_for(_shutdown_event.wait(), timeout=jittered_interval)
        except asyncio.TimeoutError:
            pass

    logger.info("Retention sweep stopped")


async def start_retention_sweep(session_factory: async_sessionmaker[AsyncSession]):
    """Start the retention sweep background task."""
    global _sweep_task, _shutdown_event

    _shutdown_event = asyncio.Event()
    _sweep_task = asyncio.create_task(retention_sweep_loop(session_factory))


async def stop_retention_sweep():
    """Stop the retention sweep background task."""
    global _sweep_task, _shutdown_event

    if _shutdown_event:
        _shutdown_event.set()

    if _sweep_task:
        try:
            await asyncio.wait_for(_sweep_task, timeout=10.0)
        except asyncio.TimeoutError:
            logger.warning("Retention sweep did not stop gracefully, cancelling")
            _sweep_task.cancel()
            try:
                await _sweep_task
            except asyncio.CancelledError:
                pass

    _sweep_task = None
    _shutdown_event = None

"""Lease manager - claims one training task at a time."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.db.repositories import TrainingTaskRepository
from vectorqueue.engine.errors import LeaseConflict
from vectorqueue.models import TrainingMode, TrainingTask
from vectorqueue.observability.metrics import metrics
from vectorqueue.utils.time import utc_now

logger = logging.getLogger(__name__)


class ClaimStatus(str, Enum):
    """Outcome of a claim attempt."""

    CLAIMED = "claimed"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class ClaimResult:
    status: ClaimStatus
    task: Optional[TrainingTask] = None
    claimed_at: Optional[datetime] = None
    error: Optional[Exception] = None


class LeaseManager:
    """
    Claims eligible ``chunk`` tasks.

    A task is eligible once its lease marker is older than the lease window.
    The claim itself is a conditional write on the row version, so two
    claimants racing for the same row cannot both win; the loser re-selects.
    Each claim commits in its own session so the lease is visible to other
    processes before any provider call starts.

    The window trades retry latency against duplicate work: a provider call
    that outlives the window lets another worker pick the same task up.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lease_window: timedelta,
        max_conflicts: int = 3,
        mode: TrainingMode = TrainingMode.CHUNK,
    ):
        self.session_factory = session_factory
        self.lease_window = lease_window
        self.max_conflicts = max_conflicts
        self.mode = mode

    async def claim(self) -> ClaimResult:
        """Try to claim exactly one task."""
        attempts = 0
        while True:
            now = utc_now()
            try:
                async with self.session_factory() as session:
                    task = await TrainingTaskRepository(session).claim_next(
                        mode=self.mode,
                        now=now,
                        lease_window=self.lease_window,
                    )
                    await session.commit()
            except LeaseConflict as e:
                attempts += 1
                metrics.inc("queue.claim.conflict")
                logger.debug(f"{e.message} (attempt {attempts}/{self.max_conflicts})")
                if attempts >= self.max_conflicts:
                    return ClaimResult(status=ClaimStatus.EMPTY)
                continue
            except SQLAlchemyError as e:
                metrics.inc("queue.claim.error")
                logger.error(f"Get training data error: {e}", exc_info=True)
                return ClaimResult(status=ClaimStatus.ERROR, error=e)

            if task is None:
                return ClaimResult(status=ClaimStatus.EMPTY)

            metrics.inc("queue.claim.claimed")
            return ClaimResult(status=ClaimStatus.CLAIMED, task=task, claimed_at=now)

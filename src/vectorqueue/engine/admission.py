"""Admission control - balance gate in front of paid embedding calls."""

import logging
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.config import settings
from vectorqueue.db.repositories import TrainingTaskRepository
from vectorqueue.engine.errors import InsufficientBalance
from vectorqueue.integrations.base import BalanceService, Notification, NotificationService
from vectorqueue.models import TrainingTask
from vectorqueue.observability.metrics import metrics

logger = logging.getLogger(__name__)

SUSPENDED_TITLE = "Vector training paused"
SUSPENDED_CONTENT = (
    "The team account balance is insufficient, so vector training has been paused. "
    "Training resumes after the account is topped up. "
    "Paused tasks are deleted after {days} days."
)


class AdmissionDecision(str, Enum):
    """What the worker should do with a claimed task."""

    ADMITTED = "admitted"
    # Team is out of funds; its whole queue was suspended
    SUSPENDED = "suspended"
    # Balance could not be checked; try again after the retry delay
    DEFERRED = "deferred"


class AdmissionController:
    """
    Checks the owning team's balance before spending on a task.

    On insufficient balance every non-poisoned task of that team is parked
    under the suspended marker, not just the current one, so the worker stops
    claiming work for an account known to be empty. The owner is notified
    once per suspension.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        balance: BalanceService,
        notifier: NotificationService,
        retention_days: int | None = None,
    ):
        self.session_factory = session_factory
        self.balance = balance
        self.notifier = notifier
        self.retention_days = (
            settings.paused_task_retention_days if retention_days is None else retention_days
        )

    async def admit(self, task: TrainingTask) -> AdmissionDecision:
        try:
            await self.balance.check_balance(task.team_id)
        except InsufficientBalance:
            await self._suspend_team(task)
            return AdmissionDecision.SUSPENDED
        except Exception as e:
            metrics.inc("queue.admission.deferred")
            logger.warning(
                f"Balance check failed, deferring task {task.task_id}: {e}",
                extra={"team_id": task.team_id},
            )
            return AdmissionDecision.DEFERRED

        return AdmissionDecision.ADMITTED

    async def _suspend_team(self, task: TrainingTask) -> None:
        logger.warning(
            "Insufficient balance, pausing vector training",
            extra={"team_id": task.team_id, "tmb_id": task.tmb_id},
        )
        try:
            await self.notifier.notify(
                Notification(
                    team_id=task.team_id,
                    tmb_id=task.tmb_id,
                    title=SUSPENDED_TITLE,
                    content=SUSPENDED_CONTENT.format(days=self.retention_days),
                )
            )
        except Exception as e:
            logger.warning(f"Suspension notice not delivered: {e}", extra={"team_id": task.team_id})

        async with self.session_factory() as session:
            suspended = await TrainingTaskRepository(session).suspend_team(task.team_id)
            await session.commit()

        metrics.inc("queue.admission.suspended")
        logger.info(f"Suspended {suspended} tasks for team {task.team_id}")

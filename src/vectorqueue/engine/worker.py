"""Vector queue runtime - claim/admit/process chains on the event loop."""

import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.config import Settings, settings as default_settings
from vectorqueue.db.repositories import TrainingTaskRepository
from vectorqueue.engine.admission import AdmissionController, AdmissionDecision
from vectorqueue.engine.failures import FailureDisposition, classify_failure
from vectorqueue.engine.governor import ConcurrencyGovernor
from vectorqueue.engine.lease import ClaimStatus, LeaseManager
from vectorqueue.engine.processor import TaskProcessor
from vectorqueue.integrations.base import (
    BalanceService,
    BillingReporter,
    EmbeddingProvider,
    NotificationService,
)
from vectorqueue.models import TrainingTask
from vectorqueue.observability.metrics import metrics

logger = logging.getLogger("vectorqueue.worker")


class IterationOutcome(str, Enum):
    """How a chain continues after one claim/process iteration."""

    # Queue observed empty; the chain stops
    EMPTY = "empty"
    # Claim the next task right away
    CONTINUE = "continue"
    # Wait the retry delay before the next claim
    BACKOFF = "backoff"


class VectorQueue:
    """
    Drives the training queue inside one process.

    ``trigger()`` starts chains as asyncio tasks and returns immediately. A
    chain is a loop: take a governor slot, run one iteration, give the slot
    back, optionally wait, repeat. It ends when the queue is observed empty or
    when the governor has no slot left. Nothing polls: chains are restarted
    by intake inserts, team resumes, start-up and the worker CLI.

    Errors inside an iteration are logged and turned into a back-off; they
    never end the chain.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedder: EmbeddingProvider,
        balance: BalanceService,
        billing: BillingReporter,
        notifier: NotificationService,
        settings: Optional[Settings] = None,
        governor: Optional[ConcurrencyGovernor] = None,
    ):
        self.settings = settings or default_settings
        self.session_factory = session_factory
        self.lease_window = timedelta(seconds=self.settings.lease_window_seconds)
        self.retry_delay = self.settings.retry_delay_seconds
        self.governor = governor or ConcurrencyGovernor(self.settings.vector_max_process)
        self.leases = LeaseManager(
            session_factory,
            lease_window=self.lease_window,
            max_conflicts=self.settings.max_claim_conflicts,
        )
        self.admission = AdmissionController(
            session_factory,
            balance=balance,
            notifier=notifier,
            retention_days=self.settings.paused_task_retention_days,
        )
        self.processor = TaskProcessor(session_factory, embedder=embedder, billing=billing)
        self._chains: set[asyncio.Task] = set()

    # =========================================================================
    # Chain management
    # =========================================================================

    @property
    def active_chains(self) -> int:
        return len(self._chains)

    def trigger(self) -> int:
        """
        Wake the queue.

        Starts one chain per free governor slot (at least one attempt) and
        returns the number of chains started. Must be called from a running
        event loop.
        """
        started = max(1, self.governor.available)
        for _ in range(started):
            chain = asyncio.create_task(self._run_chain())
            self._chains.add(chain)
            chain.add_done_callback(self._chains.discard)
        return started

    async def wait_idle(self) -> None:
        """Wait until every running chain has stopped."""
        while self._chains:
            await asyncio.gather(*list(self._chains), return_exceptions=True)

    async def run_until_empty(self) -> None:
        """Trigger the queue and wait for the chains to drain it."""
        self.trigger()
        await self.wait_idle()

    async def shutdown(self) -> None:
        """Cancel running chains; their leases expire on their own."""
        chains = list(self._chains)
        for chain in chains:
            chain.cancel()
        await asyncio.gather(*chains, return_exceptions=True)

    async def _run_chain(self) -> None:
        while self.governor.try_admit():
            try:
                outcome = await self.run_once()
            finally:
                self.governor.release()

            if outcome == IterationOutcome.EMPTY:
                if self.governor.in_flight == 0:
                    logger.info("Vector queue drained")
                return
            if outcome == IterationOutcome.BACKOFF:
                await asyncio.sleep(self.retry_delay)

    # =========================================================================
    # One iteration: claim -> admit -> process -> complete/fail
    # =========================================================================

    async def run_once(self) -> IterationOutcome:
        """Claim and handle a single task. The caller holds a governor slot."""
        try:
            return await self._iteration()
        except Exception as e:
            metrics.inc("queue.iteration.error")
            logger.error(f"Unexpected vector queue error: {e}", exc_info=True)
            return IterationOutcome.BACKOFF

    async def _iteration(self) -> IterationOutcome:
        claim = await self.leases.claim()
        if claim.status == ClaimStatus.EMPTY:
            return IterationOutcome.EMPTY
        if claim.status == ClaimStatus.ERROR:
            return IterationOutcome.BACKOFF

        task = claim.task
        decision = await self.admission.admit(task)
        if decision == AdmissionDecision.SUSPENDED:
            return IterationOutcome.CONTINUE
        if decision == AdmissionDecision.DEFERRED:
            return IterationOutcome.BACKOFF

        try:
            await self.processor.process(task)
        except Exception as e:
            return await self._handle_failure(task, e)

        return IterationOutcome.CONTINUE

    async def _handle_failure(self, task: TrainingTask, exc: Exception) -> IterationOutcome:
        classification = classify_failure(
            exc, fatal_error_codes=self.settings.embedding_fatal_error_codes
        )
        extra = {"task_id": str(task.task_id), **classification.to_log_extra()}

        if classification.disposition == FailureDisposition.POISON:
            logger.warning(f"Vector generation rejected, poisoning task: {exc}", extra=extra)
            logger.info(
                "Poisoned task payload",
                extra={"task_id": str(task.task_id), "q": task.q, "a": task.a},
            )
            async with self.session_factory() as session:
                await TrainingTaskRepository(session).mark_poisoned(task.task_id)
                await session.commit()
            metrics.inc("queue.task.poisoned")
            return IterationOutcome.CONTINUE

        logger.warning(f"Vector generation failed, retrying after lease expiry: {exc}", extra=extra)
        metrics.inc("queue.task.retry")
        return IterationOutcome.BACKOFF

    # =========================================================================
    # Operator actions
    # =========================================================================

    async def resume_team(self, team_id: str) -> int:
        """Clear a team's suspension and wake the queue."""
        async with self.session_factory() as session:
            resumed = await TrainingTaskRepository(session).resume_team(team_id)
            await session.commit()

        logger.info(f"Resumed {resumed} suspended tasks for team {team_id}")
        if resumed:
            self.trigger()
        return resumed

    async def requeue_poisoned(self, team_id: str, task_id: UUID) -> bool:
        """Release a poisoned task after inspection and wake the queue."""
        async with self.session_factory() as session:
            requeued = await TrainingTaskRepository(session).requeue_poisoned(team_id, task_id)
            await session.commit()

        if requeued:
            logger.info(f"Requeued poisoned task {task_id}")
            self.trigger()
        return requeued

    def stats(self) -> dict:
        return {
            "in_flight": self.governor.in_flight,
            "max_in_flight": self.governor.max_in_flight,
            "active_chains": self.active_chains,
            "lease_window_seconds": int(self.lease_window.total_seconds()),
        }

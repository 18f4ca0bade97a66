"""Task processor - embed a claimed task and move it into the index."""

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.db.repositories import DatasetDataRepository, TrainingTaskRepository
from vectorqueue.integrations.base import BillingReporter, EmbeddingProvider, UsageRecord
from vectorqueue.models import TrainingTask
from vectorqueue.observability.metrics import metrics
from vectorqueue.utils.text import sanitize_text

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    data_id: UUID
    tokens: int
    task_deleted: bool


def embedding_input(q: str, a: str) -> str:
    """Text sent to the provider for a q/a pair."""
    return f"{q}\n{a}" if a else q


class TaskProcessor:
    """
    Embeds one admitted, leased task.

    The index row, the usage report and the task deletion share one
    transaction: if billing fails, the index row is rolled back with it and
    the task stays queued for a retry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedder: EmbeddingProvider,
        billing: BillingReporter,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.billing = billing

    async def process(self, task: TrainingTask) -> ProcessResult:
        q = sanitize_text(task.q)
        a = sanitize_text(task.a)

        with metrics.timer("queue.embedding.duration_ms"):
            embedding = await self.embedder.embed(embedding_input(q, a), task.model)

        async with self.session_factory() as session:
            try:
                data_id = await DatasetDataRepository(session).insert(
                    task, q=q, a=a, vector=embedding.vector
                )
                await self.billing.report_usage(
                    UsageRecord(
                        team_id=task.team_id,
                        tmb_id=task.tmb_id,
                        tokens=embedding.tokens,
                        model=task.model,
                        bill_id=task.bill_id,
                    )
                )
                deleted = await TrainingTaskRepository(session).delete(task.task_id)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        if not deleted:
            logger.info(f"Task {task.task_id} was already removed from the queue")

        metrics.inc("queue.task.completed")
        metrics.inc("queue.embedding.tokens", embedding.tokens)
        return ProcessResult(data_id=data_id, tokens=embedding.tokens, task_deleted=deleted)

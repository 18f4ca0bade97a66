"""Intake - validate, deduplicate and enqueue pushed records."""

import logging
from typing import Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from vectorqueue.config import Settings, settings as default_settings
from vectorqueue.db.repositories import DatasetRepository, TrainingTaskRepository
from vectorqueue.engine.errors import BatchTooLarge, CollectionNotFound, InvalidTrainingMode
from vectorqueue.models import (
    BatchFilterResult,
    PushDataItem,
    PushDataResult,
    TrainingMode,
)
from vectorqueue.observability.metrics import metrics
from vectorqueue.utils.tokens import count_prompt_tokens_batch

logger = logging.getLogger(__name__)

TokenCounter = Callable[[Sequence[str]], list[int]]


def filter_batch(
    items: Sequence[PushDataItem],
    max_token: float,
    count_tokens: TokenCounter = count_prompt_tokens_batch,
) -> BatchFilterResult:
    """
    Sort a batch into success / over_token / repeat / error.

    Token estimates for every question are computed up front in one batch
    call; the dedup set is then filled by a single sequential pass in input
    order, so the first occurrence of a ``q + a`` pair wins.
    """
    result = BatchFilterResult()

    candidates = [item for item in items if item.q]
    token_counts = dict(zip(map(id, candidates), count_tokens([c.q for c in candidates])))

    seen: set[str] = set()
    for item in items:
        if not item.q:
            result.error.append(item)
            continue

        if token_counts[id(item)] > max_token:
            result.over_token.append(item)
            continue

        text = item.q + item.a
        if text in seen:
            result.repeat.append(item)
        else:
            seen.add(text)
            result.success.append(item)

    return result


class IntakeService:
    """Push entry point: turns a batch of records into training tasks."""

    def __init__(
        self,
        session: AsyncSession,
        on_inserted: Optional[Callable[[], None]] = None,
        settings: Optional[Settings] = None,
        count_tokens: TokenCounter = count_prompt_tokens_batch,
    ):
        self.session = session
        self.on_inserted = on_inserted
        self.settings = settings or default_settings
        self.count_tokens = count_tokens
        self.datasets = DatasetRepository(session)
        self.tasks = TrainingTaskRepository(session)

    def _mode_limits(self, mode: TrainingMode, vector_model: str) -> tuple[float, str]:
        """Token ceiling for the question field and the model tasks will use."""
        if mode == TrainingMode.QA:
            qa_model = self.settings.default_qa_model
            return qa_model.max_context * self.settings.qa_token_multiplier, qa_model.model

        model = self.settings.get_vector_model(vector_model)
        return model.max_token * self.settings.chunk_token_multiplier, model.model

    async def push_data(
        self,
        team_id: str,
        tmb_id: str,
        collection_id: UUID,
        data: Sequence[PushDataItem],
        mode: TrainingMode | str = TrainingMode.CHUNK,
        prompt: Optional[str] = None,
        bill_id: Optional[str] = None,
    ) -> PushDataResult:
        """
        Validate and enqueue a batch.

        The accepted records are inserted and committed in one transaction;
        the queue is woken once afterwards, without waiting for any embedding.
        """
        try:
            mode = TrainingMode(mode)
        except ValueError:
            raise InvalidTrainingMode(str(mode))

        limit = self.settings.intake_max_batch_size
        if len(data) > limit:
            raise BatchTooLarge(len(data), limit)

        collection = await self.datasets.get_collection_with_dataset(team_id, collection_id)
        if not collection:
            raise CollectionNotFound(str(collection_id))

        max_token, model = self._mode_limits(mode, collection.vector_model)
        filtered = filter_batch(data, max_token, self.count_tokens)

        inserted = await self.tasks.insert_many(
            [
                {
                    "team_id": team_id,
                    "tmb_id": tmb_id,
                    "dataset_id": collection.dataset_id,
                    "collection_id": collection.collection_id,
                    "bill_id": bill_id,
                    "mode": mode,
                    "prompt": prompt,
                    "model": model,
                    "q": item.q,
                    "a": item.a,
                    "indexes": item.indexes,
                }
                for item in filtered.success
            ]
        )
        await self.session.commit()

        metrics.inc("intake.records.inserted", inserted)
        metrics.inc("intake.records.rejected", len(data) - inserted)
        logger.info(
            f"Pushed {inserted}/{len(data)} records to collection {collection_id}",
            extra={
                "team_id": team_id,
                "over_token": len(filtered.over_token),
                "repeat": len(filtered.repeat),
                "malformed": len(filtered.error),
            },
        )

        if inserted > 0 and self.on_inserted:
            self.on_inserted()

        return PushDataResult(
            inserted_count=inserted,
            over_token=filtered.over_token,
            repeat=filtered.repeat,
            error=filtered.error,
        )

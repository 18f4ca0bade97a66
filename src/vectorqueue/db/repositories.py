"""Database repositories for VectorQueue entities."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vectorqueue.db.tables import (
    CollectionTable,
    DatasetDataTable,
    DatasetTable,
    TrainingTaskTable,
)
from vectorqueue.engine.errors import LeaseConflict
from vectorqueue.models import CollectionInfo, TaskState, TrainingMode, TrainingTask
from vectorqueue.utils.time import NEVER_LEASED, POISONED_UNTIL, SUSPENDED_UNTIL, utc_now

_PAUSED_MARKERS = (POISONED_UNTIL, SUSPENDED_UNTIL)


class DatasetRepository:
    """Repository for datasets and their collections."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_dataset(
        self,
        team_id: str,
        tmb_id: str,
        name: str,
        vector_model: str,
    ) -> DatasetTable:
        """Create a dataset bound to an embedding model."""
        row = DatasetTable(
            dataset_id=uuid4(),
            team_id=team_id,
            tmb_id=tmb_id,
            name=name,
            vector_model=vector_model,
            created_at=utc_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_dataset(self, team_id: str, dataset_id: UUID) -> DatasetTable | None:
        result = await self.session.execute(
            select(DatasetTable).where(
                DatasetTable.team_id == team_id,
                DatasetTable.dataset_id == dataset_id,
            )
        )
        return result.scalar_one_or_none()

    async def create_collection(
        self,
        dataset: DatasetTable,
        tmb_id: str,
        name: str,
    ) -> CollectionTable:
        """Create a collection inside a dataset."""
        row = CollectionTable(
            collection_id=uuid4(),
            dataset_id=dataset.dataset_id,
            team_id=dataset.team_id,
            tmb_id=tmb_id,
            name=name,
            created_at=utc_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_collection_with_dataset(
        self,
        team_id: str,
        collection_id: UUID,
    ) -> CollectionInfo | None:
        """Resolve a team's collection together with its dataset's vector model."""
        result = await self.session.execute(
            select(CollectionTable, DatasetTable)
            .join(DatasetTable, CollectionTable.dataset_id == DatasetTable.dataset_id)
            .where(
                CollectionTable.collection_id == collection_id,
                CollectionTable.team_id == team_id,
            )
        )
        row = result.first()
        if not row:
            return None
        collection, dataset = row
        return CollectionInfo(
            collection_id=collection.collection_id,
            dataset_id=dataset.dataset_id,
            team_id=collection.team_id,
            name=collection.name,
            vector_model=dataset.vector_model,
        )


class TrainingTaskRepository:
    """Repository for the training queue."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_many(self, rows: list[dict[str, Any]]) -> int:
        """
        Bulk insert tasks.

        Every row gets a fresh id, the never-leased marker and version 0.
        Nothing is committed here; the caller owns the transaction so the
        batch lands atomically.
        """
        if not rows:
            return 0

        now = utc_now()
        self.session.add_all(
            [
                TrainingTaskTable(
                    task_id=uuid4(),
                    lease_until=NEVER_LEASED,
                    version=0,
                    created_at=now,
                    updated_at=now,
                    **row,
                )
                for row in rows
            ]
        )
        await self.session.flush()
        return len(rows)

    async def get(self, task_id: UUID) -> TrainingTask | None:
        """Get a task by ID."""
        result = await self.session.execute(
            select(TrainingTaskTable).where(TrainingTaskTable.task_id == task_id)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list(
        self,
        team_id: str,
        lease_window: timedelta,
        state: TaskState | None = None,
        limit: int = 50,
    ) -> list[TrainingTask]:
        """List a team's tasks, optionally filtered by derived state."""
        now = utc_now()
        cutoff = now - lease_window
        query = select(TrainingTaskTable).where(TrainingTaskTable.team_id == team_id)

        if state == TaskState.POISONED:
            query = query.where(TrainingTaskTable.lease_until == POISONED_UNTIL)
        elif state == TaskState.SUSPENDED:
            query = query.where(TrainingTaskTable.lease_until == SUSPENDED_UNTIL)
        elif state == TaskState.PENDING:
            query = query.where(TrainingTaskTable.lease_until <= cutoff)
        elif state == TaskState.LEASED:
            query = query.where(
                TrainingTaskTable.lease_until > cutoff,
                TrainingTaskTable.lease_until.not_in(_PAUSED_MARKERS),
            )

        query = query.order_by(TrainingTaskTable.created_at.asc()).limit(limit)
        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def claim_next(
        self,
        mode: TrainingMode,
        now: datetime,
        lease_window: timedelta,
    ) -> TrainingTask | None:
        """
        Claim the oldest eligible task with a versioned conditional write.

        Returns the task as it was *before* the claim, or None when nothing is
        eligible. Raises LeaseConflict when another claimant updated the row
        between our select and our update; the caller decides whether to
        retry.
        """
        cutoff = now - lease_window
        result = await self.session.execute(
            select(TrainingTaskTable)
            .where(
                TrainingTaskTable.mode == mode,
                TrainingTaskTable.lease_until <= cutoff,
            )
            .order_by(
                TrainingTaskTable.lease_until.asc(),
                TrainingTaskTable.created_at.asc(),
            )
            .limit(1)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        previous = self._row_to_model(row)

        claimed = await self.session.execute(
            update(TrainingTaskTable)
            .where(
                TrainingTaskTable.task_id == previous.task_id,
                TrainingTaskTable.version == previous.version,
                TrainingTaskTable.lease_until <= cutoff,
            )
            .values(
                lease_until=now,
                version=TrainingTaskTable.version + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise LeaseConflict(str(previous.task_id))

        return previous

    async def mark_poisoned(self, task_id: UUID) -> bool:
        """Park a task under the poison marker; it stays for inspection."""
        return await self._set_marker(task_id, POISONED_UNTIL)

    async def requeue_poisoned(self, team_id: str, task_id: UUID) -> bool:
        """Make a poisoned task claimable again."""
        now = utc_now()
        result = await self.session.execute(
            update(TrainingTaskTable)
            .where(
                TrainingTaskTable.team_id == team_id,
                TrainingTaskTable.task_id == task_id,
                TrainingTaskTable.lease_until == POISONED_UNTIL,
            )
            .values(
                lease_until=NEVER_LEASED,
                version=TrainingTaskTable.version + 1,
                updated_at=now,
            )
        )
        return result.rowcount > 0

    async def suspend_team(self, team_id: str) -> int:
        """Suspend every non-poisoned task of a team."""
        now = utc_now()
        result = await self.session.execute(
            update(TrainingTaskTable)
            .where(
                TrainingTaskTable.team_id == team_id,
                TrainingTaskTable.lease_until != POISONED_UNTIL,
            )
            .values(
                lease_until=SUSPENDED_UNTIL,
                version=TrainingTaskTable.version + 1,
                updated_at=now,
            )
        )
        return result.rowcount

    async def resume_team(self, team_id: str) -> int:
        """Clear the suspended marker on a team's tasks."""
        now = utc_now()
        result = await self.session.execute(
            update(TrainingTaskTable)
            .where(
                TrainingTaskTable.team_id == team_id,
                TrainingTaskTable.lease_until == SUSPENDED_UNTIL,
            )
            .values(
                lease_until=NEVER_LEASED,
                version=TrainingTaskTable.version + 1,
                updated_at=now,
            )
        )
        return result.rowcount

    async def delete(self, task_id: UUID) -> bool:
        """Delete a task. Deleting a missing task is a no-op."""
        result = await self.session.execute(
            delete(TrainingTaskTable).where(TrainingTaskTable.task_id == task_id)
        )
        return result.rowcount > 0

    async def delete_paused_before(self, cutoff: datetime, limit: int = 500) -> int:
        """Delete suspended/poisoned tasks parked before ``cutoff``."""
        result = await self.session.execute(
            select(TrainingTaskTable.task_id)
            .where(
                and_(
                    TrainingTaskTable.lease_until.in_(_PAUSED_MARKERS),
                    TrainingTaskTable.updated_at < cutoff,
                )
            )
            .limit(limit)
        )
        task_ids = list(result.scalars().all())
        if not task_ids:
            return 0

        await self.session.execute(
            delete(TrainingTaskTable).where(TrainingTaskTable.task_id.in_(task_ids))
        )
        return len(task_ids)

    async def _set_marker(self, task_id: UUID, marker: datetime) -> bool:
        now = utc_now()
        result = await self.session.execute(
            update(TrainingTaskTable)
            .where(TrainingTaskTable.task_id == task_id)
            .values(
                lease_until=marker,
                version=TrainingTaskTable.version + 1,
                updated_at=now,
            )
        )
        return result.rowcount > 0

    def _row_to_model(self, row: TrainingTaskTable) -> TrainingTask:
        """Convert database row to model."""
        return TrainingTask(
            task_id=row.task_id,
            team_id=row.team_id,
            tmb_id=row.tmb_id,
            dataset_id=row.dataset_id,
            collection_id=row.collection_id,
            mode=row.mode,
            prompt=row.prompt,
            model=row.model,
            q=row.q,
            a=row.a or "",
            indexes=list(row.indexes or []),
            lease_until=row.lease_until,
            version=row.version,
            bill_id=row.bill_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class DatasetDataRepository:
    """Repository for retrieval index rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        task: TrainingTask,
        q: str,
        a: str,
        vector: list[float],
    ) -> UUID:
        """Write one embedded record into the index."""
        data_id = uuid4()
        self.session.add(
            DatasetDataTable(
                data_id=data_id,
                team_id=task.team_id,
                tmb_id=task.tmb_id,
                dataset_id=task.dataset_id,
                collection_id=task.collection_id,
                q=q,
                a=a,
                indexes=task.indexes,
                vector=vector,
                model=task.model,
                created_at=utc_now(),
            )
        )
        await self.session.flush()
        return data_id

    async def list_for_collection(self, collection_id: UUID) -> list[DatasetDataTable]:
        result = await self.session.execute(
            select(DatasetDataTable)
            .where(DatasetDataTable.collection_id == collection_id)
            .order_by(DatasetDataTable.created_at.asc())
        )
        return list(result.scalars().all())

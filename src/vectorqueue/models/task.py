"""Training task model - one pending unit of text-to-vector work."""

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from vectorqueue.models.enums import TaskState, TrainingMode
from vectorqueue.utils.time import POISONED_UNTIL, SUSPENDED_UNTIL, utc_now


class TrainingTask(BaseModel):
    """Queued record awaiting its embedding."""

    task_id: UUID

    # Ownership
    team_id: str
    tmb_id: str
    dataset_id: UUID
    collection_id: UUID

    # What to train
    mode: TrainingMode = TrainingMode.CHUNK
    prompt: Optional[str] = None
    model: str
    q: str
    a: str = ""
    indexes: list[dict[str, Any]] = Field(default_factory=list)

    # Lease marker and optimistic concurrency counter
    lease_until: datetime
    version: int = 0

    # Originating billing event
    bill_id: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    def state(self, lease_window: timedelta, now: datetime | None = None) -> TaskState:
        """Derive the task state from its lease marker."""
        if self.lease_until == POISONED_UNTIL:
            return TaskState.POISONED
        if self.lease_until == SUSPENDED_UNTIL:
            return TaskState.SUSPENDED
        if now is None:
            now = utc_now()
        if self.lease_until > now - lease_window:
            return TaskState.LEASED
        return TaskState.PENDING

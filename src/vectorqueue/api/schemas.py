"""API request/response schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vectorqueue.models import PushDataItem, TaskState, TrainingMode


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names, snake_case also accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Intake
# ============================================================================


class PushDataRequest(CamelModel):
    """Push a batch of records into a collection."""

    collection_id: UUID = Field(..., description="Target collection")
    data: list[PushDataItem] = Field(..., description="Records, at most intake_max_batch_size")
    mode: TrainingMode = Field(default=TrainingMode.CHUNK, description="chunk or qa")
    prompt: Optional[str] = Field(None, description="QA split prompt")
    bill_id: Optional[str] = Field(None, description="Originating billing event")


# ============================================================================
# Datasets
# ============================================================================


class CreateDatasetRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    vector_model: Optional[str] = Field(None, description="Embedding model, defaults to the first configured")


class DatasetResponse(CamelModel):
    dataset_id: UUID
    name: str
    vector_model: str
    created_at: datetime


class CreateCollectionRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)


class CollectionResponse(CamelModel):
    collection_id: UUID
    dataset_id: UUID
    name: str
    created_at: datetime


# ============================================================================
# Training queue
# ============================================================================


class TrainingTaskResponse(CamelModel):
    task_id: UUID
    dataset_id: UUID
    collection_id: UUID
    mode: TrainingMode
    model: str
    q: str
    a: str
    state: TaskState
    lease_until: datetime
    created_at: datetime
    updated_at: datetime


class ListTrainingTasksResponse(CamelModel):
    tasks: list[TrainingTaskResponse]


class RequeueTaskResponse(CamelModel):
    ok: bool


class ResumeTeamResponse(CamelModel):
    resumed_count: int


class QueueStatsResponse(CamelModel):
    queue: dict[str, Any]
    metrics: dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    version: str

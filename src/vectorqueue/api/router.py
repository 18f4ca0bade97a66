"""REST API router."""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vectorqueue import __version__
from vectorqueue.api.deps import (
    Caller,
    get_caller,
    get_db_session,
    get_vector_queue,
    verify_api_key,
)
from vectorqueue.api.schemas import (
    CollectionResponse,
    CreateCollectionRequest,
    CreateDatasetRequest,
    DatasetResponse,
    HealthResponse,
    ListTrainingTasksResponse,
    PushDataRequest,
    QueueStatsResponse,
    RequeueTaskResponse,
    ResumeTeamResponse,
    TrainingTaskResponse,
)
from vectorqueue.config import settings
from vectorqueue.db.repositories import DatasetRepository, TrainingTaskRepository
from vectorqueue.engine.errors import (
    BatchTooLarge,
    CollectionNotFound,
    InvalidTrainingMode,
)
from vectorqueue.engine.intake import IntakeService
from vectorqueue.engine.worker import VectorQueue
from vectorqueue.models import PushDataResult, TaskState
from vectorqueue.observability.metrics import metrics

router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])


# ============================================================================
# Health & stats
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/queue/stats", response_model=QueueStatsResponse)
async def queue_stats(queue: VectorQueue = Depends(get_vector_queue)):
    """Governor state and worker counters for this process."""
    return QueueStatsResponse(queue=queue.stats(), metrics=metrics.snapshot())


# ============================================================================
# Datasets
# ============================================================================


@router.post("/datasets", response_model=DatasetResponse, status_code=201)
async def create_dataset(
    request: CreateDatasetRequest,
    session: AsyncSession = Depends(get_db_session),
    caller: Caller = Depends(get_caller),
):
    """Create a dataset bound to an embedding model."""
    vector_model = settings.get_vector_model(request.vector_model)
    if request.vector_model and vector_model.model != request.vector_model:
        raise HTTPException(status_code=422, detail=f"Unknown vector model: {request.vector_model}")

    dataset = await DatasetRepository(session).create_dataset(
        team_id=caller.team_id,
        tmb_id=caller.tmb_id,
        name=request.name,
        vector_model=vector_model.model,
    )
    return DatasetResponse(
        dataset_id=dataset.dataset_id,
        name=dataset.name,
        vector_model=dataset.vector_model,
        created_at=dataset.created_at,
    )


@router.post(
    "/datasets/{dataset_id}/collections",
    response_model=CollectionResponse,
    status_code=201,
)
async def create_collection(
    dataset_id: UUID,
    request: CreateCollectionRequest,
    session: AsyncSession = Depends(get_db_session),
    caller: Caller = Depends(get_caller),
):
    """Create a collection inside one of the caller's datasets."""
    repo = DatasetRepository(session)
    dataset = await repo.get_dataset(caller.team_id, dataset_id)
    if not dataset:
        raise HTTPException(status_code=404, detail=f"Dataset not found: {dataset_id}")

    collection = await repo.create_collection(dataset, tmb_id=caller.tmb_id, name=request.name)
    return CollectionResponse(
        collection_id=collection.collection_id,
        dataset_id=collection.dataset_id,
        name=collection.name,
        created_at=collection.created_at,
    )


# ============================================================================
# Intake
# ============================================================================


@router.post("/datasets/data/push", response_model=PushDataResult)
async def push_data(
    request: PushDataRequest,
    session: AsyncSession = Depends(get_db_session),
    caller: Caller = Depends(get_caller),
    queue: VectorQueue = Depends(get_vector_queue),
):
    """
    Push records into a collection's training queue.

    Returns the rejected records per bucket and the inserted count; embedding
    happens asynchronously.
    """
    intake = IntakeService(session, on_inserted=queue.trigger)
    try:
        return await intake.push_data(
            team_id=caller.team_id,
            tmb_id=caller.tmb_id,
            collection_id=request.collection_id,
            data=request.data,
            mode=request.mode,
            prompt=request.prompt,
            bill_id=request.bill_id,
        )
    except (BatchTooLarge, InvalidTrainingMode) as e:
        raise HTTPException(status_code=422, detail=e.message)
    except CollectionNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


# ============================================================================
# Training queue
# ============================================================================


@router.get("/training/tasks", response_model=ListTrainingTasksResponse)
async def list_training_tasks(
    state: Optional[TaskState] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_db_session),
    caller: Caller = Depends(get_caller),
):
    """List the caller team's queued tasks with their derived state."""
    lease_window = timedelta(seconds=settings.lease_window_seconds)
    tasks = await TrainingTaskRepository(session).list(
        team_id=caller.team_id,
        lease_window=lease_window,
        state=state,
        limit=limit,
    )
    return ListTrainingTasksResponse(
        tasks=[
            TrainingTaskResponse(
                task_id=t.task_id,
                dataset_id=t.dataset_id,
                collection_id=t.collection_id,
                mode=t.mode,
                model=t.model,
                q=t.q,
                a=t.a,
                state=t.state(lease_window),
                lease_until=t.lease_until,
                created_at=t.created_at,
                updated_at=t.updated_at,
            )
            for t in tasks
        ]
    )


@router.post("/training/tasks/{task_id}/requeue", response_model=RequeueTaskResponse)
async def requeue_training_task(
    task_id: UUID,
    caller: Caller = Depends(get_caller),
    queue: VectorQueue = Depends(get_vector_queue),
):
    """Release a poisoned task after inspection."""
    if not await queue.requeue_poisoned(caller.team_id, task_id):
        raise HTTPException(
            status_code=404,
            detail=f"Poisoned task not found: {task_id}",
        )
    return RequeueTaskResponse(ok=True)


@router.post("/training/resume", response_model=ResumeTeamResponse)
async def resume_training(
    caller: Caller = Depends(get_caller),
    queue: VectorQueue = Depends(get_vector_queue),
):
    """Resume the caller team's suspended tasks, e.g. after a top-up."""
    resumed = await queue.resume_team(caller.team_id)
    return ResumeTeamResponse(resumed_count=resumed)

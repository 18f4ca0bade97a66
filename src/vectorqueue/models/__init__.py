"""VectorQueue data models."""

from vectorqueue.models.enums import TaskState, TrainingMode
from vectorqueue.models.intake import (
    BatchFilterResult,
    CollectionInfo,
    PushDataItem,
    PushDataResult,
)
from vectorqueue.models.task import TrainingTask

__all__ = [
    "BatchFilterResult",
    "CollectionInfo",
    "PushDataItem",
    "PushDataResult",
    "TaskState",
    "TrainingMode",
    "TrainingTask",
]

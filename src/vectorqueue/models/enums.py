"""VectorQueue enumerations."""

from enum import Enum


class TrainingMode(str, Enum):
    """How a pushed record is turned into index data."""

    CHUNK = "chunk"
    QA = "qa"


class TaskState(str, Enum):
    """Derived state of a training task, read from its lease marker."""

    PENDING = "pending"
    LEASED = "leased"
    SUSPENDED = "suspended"
    POISONED = "poisoned"

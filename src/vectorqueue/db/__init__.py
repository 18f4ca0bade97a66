"""VectorQueue database layer."""

from vectorqueue.db.base import Base, init_db
from vectorqueue.db.tables import (
    CollectionTable,
    DatasetDataTable,
    DatasetTable,
    TrainingTaskTable,
)

__all__ = [
    "Base",
    "init_db",
    "CollectionTable",
    "DatasetDataTable",
    "DatasetTable",
    "TrainingTaskTable",
]

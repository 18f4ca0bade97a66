"""VectorQueue engine - intake, lease, admission, processing and the worker loop.

Only dependency-free pieces are re-exported here; the database-backed
components are imported from their modules.
"""

from vectorqueue.engine.errors import (
    BatchTooLarge,
    BillingUnavailable,
    CollectionNotFound,
    EmbeddingError,
    EmbeddingInvalidRequest,
    EmbeddingRateLimited,
    EmbeddingUnavailable,
    InsufficientBalance,
    InvalidTrainingMode,
    LeaseConflict,
    VectorQueueError,
)

__all__ = [
    "BatchTooLarge",
    "BillingUnavailable",
    "CollectionNotFound",
    "EmbeddingError",
    "EmbeddingInvalidRequest",
    "EmbeddingRateLimited",
    "EmbeddingUnavailable",
    "InsufficientBalance",
    "InvalidTrainingMode",
    "LeaseConflict",
    "VectorQueueError",
]

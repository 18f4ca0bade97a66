"""VectorQueue engine errors."""

from typing import Any, Optional


class VectorQueueError(Exception):
    """Base error for VectorQueue operations."""

    def __init__(self, message: str, code: str = "VECTORQUEUE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


# =============================================================================
# Intake (surfaced synchronously to the submitter)
# =============================================================================


class BatchTooLarge(VectorQueueError):
    """Push batch exceeds the configured record limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Data is too long, max {limit} (got {size})", "BATCH_TOO_LARGE")
        self.size = size
        self.limit = limit


class InvalidTrainingMode(VectorQueueError):
    """Unknown training mode."""

    def __init__(self, mode: str):
        super().__init__(f"Unknown training mode: {mode}", "INVALID_TRAINING_MODE")
        self.mode = mode


class CollectionNotFound(VectorQueueError):
    """Collection does not exist for the requesting team."""

    def __init__(self, collection_id: str):
        super().__init__(f"Collection not found: {collection_id}", "COLLECTION_NOT_FOUND")
        self.collection_id = collection_id


# =============================================================================
# Queue loop (handled inside the worker, never surfaced)
# =============================================================================


class LeaseConflict(VectorQueueError):
    """Another worker claimed the task between select and conditional update."""

    def __init__(self, task_id: str):
        super().__init__(f"Lost claim race for task {task_id}", "LEASE_CONFLICT")
        self.task_id = task_id


class InsufficientBalance(VectorQueueError):
    """Team account cannot pay for more embeddings."""

    def __init__(self, team_id: str):
        super().__init__(f"Insufficient balance for team {team_id}", "INSUFFICIENT_BALANCE")
        self.team_id = team_id


class BillingUnavailable(VectorQueueError):
    """Balance or billing service could not be reached."""

    def __init__(self, message: str = "Billing service unavailable"):
        super().__init__(message, "BILLING_UNAVAILABLE")


class EmbeddingError(VectorQueueError):
    """Embedding provider failure.

    Carries whatever the provider told us so rejections can be diagnosed
    from the logs.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        payload: Any = None,
        code: str = "EMBEDDING_ERROR",
        error_code: Optional[int] = None,
    ):
        super().__init__(message, code)
        self.status_code = status_code
        self.error_type = error_type
        self.payload = payload
        # Application error code from the response body, not the HTTP status
        self.error_code = error_code


class EmbeddingInvalidRequest(EmbeddingError):
    """Provider rejected the input itself."""

    def __init__(self, message: str, status_code: Optional[int] = 400, error_type: Optional[str] = None, payload: Any = None):
        super().__init__(
            message,
            status_code=status_code,
            error_type=error_type or "invalid_request_error",
            payload=payload,
            code="EMBEDDING_INVALID_REQUEST",
        )


class EmbeddingRateLimited(EmbeddingError):
    """Provider throttled the call."""

    def __init__(self, message: str = "Rate limited", payload: Any = None):
        super().__init__(
            message,
            status_code=429,
            error_type="rate_limit_exceeded",
            payload=payload,
            code="EMBEDDING_RATE_LIMITED",
        )


class EmbeddingUnavailable(EmbeddingError):
    """Provider could not be reached or answered with a server error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
        error_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            status_code=status_code,
            payload=payload,
            code="EMBEDDING_UNAVAILABLE",
            error_code=error_code,
        )

"""Failure classification for the vector worker."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from vectorqueue.config import settings
from vectorqueue.engine.errors import EmbeddingError, EmbeddingInvalidRequest

logger = logging.getLogger(__name__)

INVALID_MESSAGE_FORMAT = "invalid message format"
INVALID_REQUEST_TYPE = "invalid_request_error"


class FailureDisposition(str, Enum):
    """What happens to a task whose processing raised."""

    # Content can never be embedded: park under the poison marker
    POISON = "poison"
    # Anything else: leave the lease to expire and back off
    RETRY_LATER = "retry_later"


@dataclass
class FailureClassification:
    disposition: FailureDisposition
    reason: str
    status_code: Optional[int] = None
    error_type: Optional[str] = None
    detail: Any = None

    def to_log_extra(self) -> dict[str, Any]:
        return {
            "disposition": self.disposition.value,
            "reason": self.reason,
            "status_code": self.status_code,
            "error_type": self.error_type,
            "detail": self.detail,
        }


def classify_failure(
    exc: BaseException,
    fatal_error_codes: Optional[Iterable[int]] = None,
) -> FailureClassification:
    """
    Decide between poisoning a task and retrying it later.

    HTTP status alone never poisons: transport failures and 5xx responses are
    transient. Content the provider cannot take is permanent, and so is any
    application error code listed in ``fatal_error_codes``.
    """
    if fatal_error_codes is None:
        fatal_error_codes = settings.embedding_fatal_error_codes
    fatal_error_codes = set(fatal_error_codes)

    if isinstance(exc, EmbeddingError):
        status_code = exc.status_code
        error_type = exc.error_type

        if isinstance(exc, EmbeddingInvalidRequest) or error_type == INVALID_REQUEST_TYPE:
            reason = "invalid_request"
        elif exc.message == INVALID_MESSAGE_FORMAT:
            reason = "invalid_message_format"
        elif exc.error_code is not None and exc.error_code in fatal_error_codes:
            reason = "fatal_error_code"
        else:
            return FailureClassification(
                disposition=FailureDisposition.RETRY_LATER,
                reason=exc.code.lower(),
                status_code=status_code,
                error_type=error_type,
                detail=exc.payload,
            )

        return FailureClassification(
            disposition=FailureDisposition.POISON,
            reason=reason,
            status_code=status_code,
            error_type=error_type,
            detail=exc.payload,
        )

    if str(exc) == INVALID_MESSAGE_FORMAT:
        return FailureClassification(
            disposition=FailureDisposition.POISON,
            reason="invalid_message_format",
        )

    return FailureClassification(
        disposition=FailureDisposition.RETRY_LATER,
        reason=type(exc).__name__,
        detail=str(exc),
    )

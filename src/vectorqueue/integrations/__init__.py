"""External collaborators: embedding provider, billing and notifications."""

from vectorqueue.integrations.base import (
    BalanceService,
    BillingReporter,
    EmbeddingProvider,
    EmbeddingResult,
    Notification,
    NotificationService,
    UsageRecord,
)
from vectorqueue.integrations.billing import HTTPBalanceService, HTTPBillingReporter
from vectorqueue.integrations.embedding import OpenAIEmbeddingClient
from vectorqueue.integrations.notify import HTTPNotificationService

__all__ = [
    "BalanceService",
    "BillingReporter",
    "EmbeddingProvider",
    "EmbeddingResult",
    "HTTPBalanceService",
    "HTTPBillingReporter",
    "HTTPNotificationService",
    "Notification",
    "NotificationService",
    "OpenAIEmbeddingClient",
    "UsageRecord",
]

"""Wiring of the queue runtime with its HTTP collaborators."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vectorqueue.config import Settings, settings as default_settings
from vectorqueue.engine.worker import VectorQueue
from vectorqueue.integrations import (
    HTTPBalanceService,
    HTTPBillingReporter,
    HTTPNotificationService,
    OpenAIEmbeddingClient,
)


def build_vector_queue(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> VectorQueue:
    """Create a VectorQueue talking to the configured services."""
    settings = settings or default_settings
    return VectorQueue(
        session_factory,
        embedder=OpenAIEmbeddingClient(
            base_url=settings.embedding_base_url,
            api_key=settings.embedding_api_key,
            timeout_seconds=settings.embedding_timeout_seconds,
        ),
        balance=HTTPBalanceService(
            endpoint=settings.billing_endpoint,
            auth_token=settings.billing_auth_token,
            timeout_seconds=settings.billing_timeout_seconds,
        ),
        billing=HTTPBillingReporter(
            endpoint=settings.billing_endpoint,
            auth_token=settings.billing_auth_token,
            timeout_seconds=settings.billing_timeout_seconds,
        ),
        notifier=HTTPNotificationService(endpoint=settings.notification_endpoint),
        settings=settings,
    )

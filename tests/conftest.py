"""
Pytest fixtures for VectorQueue tests.
"""

import os
from datetime import timedelta
from typing import Sequence
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test config is set before importing vectorqueue modules.
os.environ.setdefault("VECTORQUEUE_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("VECTORQUEUE_ENV", "development")
os.environ.setdefault("VECTORQUEUE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VECTORQUEUE_RETENTION_SWEEP_ENABLED", "false")

from vectorqueue.config import settings
from vectorqueue.db import base as db_base
from vectorqueue.db.repositories import DatasetRepository, TrainingTaskRepository
from vectorqueue.engine.worker import VectorQueue
from vectorqueue.integrations.base import (
    BalanceService,
    BillingReporter,
    EmbeddingProvider,
    EmbeddingResult,
    Notification,
    NotificationService,
    UsageRecord,
)
from vectorqueue.engine.errors import BillingUnavailable, InsufficientBalance
from vectorqueue.models import CollectionInfo, TrainingMode, TrainingTask
from vectorqueue.observability.metrics import metrics

pytest_plugins = ("pytest_asyncio",)

TEAM_ID = "team-a"
MEMBER_ID = "member-a"
OTHER_TEAM_ID = "team-b"
VECTOR_MODEL = "text-embedding-ada-002"
LEASE_WINDOW = timedelta(seconds=60)


def count_words(texts: Sequence[str]) -> list[int]:
    """Deterministic token counter: one token per whitespace separated word."""
    return [len(t.split()) for t in texts]


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeEmbedder(EmbeddingProvider):
    """Returns a fixed vector; queued exceptions are raised first, in order."""

    def __init__(self, dimensions: int = 4):
        self.vector = [0.5] * dimensions
        self.calls: list[tuple[str, str]] = []
        self.failures: list[Exception] = []

    async def embed(self, text: str, model: str) -> EmbeddingResult:
        self.calls.append((text, model))
        if self.failures:
            raise self.failures.pop(0)
        return EmbeddingResult(vector=list(self.vector), tokens=len(text.split()))


class FakeBalance(BalanceService):
    def __init__(self):
        self.insufficient: set[str] = set()
        self.unavailable = False
        self.checked: list[str] = []

    async def check_balance(self, team_id: str) -> None:
        self.checked.append(team_id)
        if self.unavailable:
            raise BillingUnavailable("balance service down")
        if team_id in self.insufficient:
            raise InsufficientBalance(team_id)


class FakeBilling(BillingReporter):
    def __init__(self):
        self.usages: list[UsageRecord] = []
        self.error: Exception | None = None

    async def report_usage(self, usage: UsageRecord) -> None:
        if self.error:
            raise self.error
        self.usages.append(usage)


class FakeNotifier(NotificationService):
    def __init__(self):
        self.sent: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine per test; tables created up front."""
    engine = db_base.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'vectorqueue.db'}")
    await db_base.init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine, monkeypatch):
    """Session factory for the test engine, also wired into vectorqueue.db.base."""
    factory = db_base.build_session_factory(engine)
    monkeypatch.setattr(db_base, "async_session_factory", factory)
    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings():
    return settings.model_copy(
        update={
            "retry_delay_seconds": 0.0,
            "vector_max_process": 4,
            "lease_window_seconds": 60,
        }
    )


@pytest.fixture
async def collection(session_factory) -> CollectionInfo:
    """A dataset with one collection owned by TEAM_ID."""
    async with session_factory() as session:
        repo = DatasetRepository(session)
        dataset = await repo.create_dataset(
            team_id=TEAM_ID, tmb_id=MEMBER_ID, name="docs", vector_model=VECTOR_MODEL
        )
        created = await repo.create_collection(dataset, tmb_id=MEMBER_ID, name="faq")
        await session.commit()
        return await repo.get_collection_with_dataset(TEAM_ID, created.collection_id)


async def enqueue(
    session_factory,
    collection: CollectionInfo,
    questions: Sequence[str],
    team_id: str = TEAM_ID,
    mode: TrainingMode = TrainingMode.CHUNK,
    answer: str = "",
) -> list[TrainingTask]:
    """Insert tasks directly, bypassing intake, and return them oldest first."""
    async with session_factory() as session:
        repo = TrainingTaskRepository(session)
        for q in questions:
            await repo.insert_many(
                [
                    {
                        "team_id": team_id,
                        "tmb_id": MEMBER_ID,
                        "dataset_id": collection.dataset_id,
                        "collection_id": collection.collection_id,
                        "mode": mode,
                        "model": VECTOR_MODEL,
                        "q": q,
                        "a": answer,
                        "indexes": [],
                    }
                ]
            )
        await session.commit()

    async with session_factory() as session:
        stored = await TrainingTaskRepository(session).list(
            team_id=team_id, lease_window=LEASE_WINDOW, limit=200
        )
    by_q = {t.q: t for t in stored}
    return [by_q[q] for q in questions]


async def load_task(session_factory, task_id: UUID) -> TrainingTask | None:
    async with session_factory() as session:
        return await TrainingTaskRepository(session).get(task_id)


# =============================================================================
# Queue runtime
# =============================================================================


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def balance():
    return FakeBalance()


@pytest.fixture
def billing():
    return FakeBilling()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def queue(session_factory, embedder, balance, billing, notifier, test_settings):
    queue = VectorQueue(
        session_factory,
        embedder=embedder,
        balance=balance,
        billing=billing,
        notifier=notifier,
        settings=test_settings,
    )
    yield queue
    await queue.shutdown()


@pytest.fixture
async def client(session_factory, queue):
    """Async test client bound to the test database and queue."""
    from vectorqueue.main import app

    app.state.vector_queue = queue
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-Team-ID": TEAM_ID, "X-Member-ID": MEMBER_ID},
    ) as client:
        yield client

    await queue.shutdown()
    del app.state.vector_queue

"""
Intake tests: validation, dedup and enqueueing of pushed records.
"""

from uuid import uuid4

import pytest

from conftest import MEMBER_ID, OTHER_TEAM_ID, TEAM_ID, LEASE_WINDOW, count_words
from vectorqueue.db.repositories import TrainingTaskRepository
from vectorqueue.engine.errors import BatchTooLarge, CollectionNotFound, InvalidTrainingMode
from vectorqueue.engine.intake import IntakeService, filter_batch
from vectorqueue.models import PushDataItem, TaskState, TrainingMode
from vectorqueue.utils.time import NEVER_LEASED


def words(n: int) -> str:
    return " ".join(["word"] * n)


class WakeRecorder:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def make_intake(session, test_settings, wake=None) -> IntakeService:
    return IntakeService(
        session,
        on_inserted=wake,
        settings=test_settings,
        count_tokens=count_words,
    )


# =============================================================================
# filter_batch
# =============================================================================


def test_filter_batch_buckets_cover_every_record():
    """Every record lands in exactly one bucket."""
    items = [
        PushDataItem(q="what is a lease", a="a claim window"),
        PushDataItem(q="", a="orphan answer"),
        PushDataItem(q=words(20)),
        PushDataItem(q="what is a lease", a="a claim window"),
        PushDataItem(q="what is a lease", a="a different answer"),
    ]

    result = filter_batch(items, max_token=10, count_tokens=count_words)

    assert len(result.success) == 2
    assert result.error == [items[1]]
    assert result.over_token == [items[2]]
    assert result.repeat == [items[3]]
    total = len(result.success) + len(result.error) + len(result.over_token) + len(result.repeat)
    assert total == len(items)


def test_filter_batch_first_occurrence_wins():
    first = PushDataItem(q="duplicate", a="x")
    second = PushDataItem(q="duplicate", a="x")

    result = filter_batch([first, second], max_token=100, count_tokens=count_words)

    assert result.success[0] is first
    assert result.repeat[0] is second


def test_filter_batch_dedups_on_concatenation():
    """q+a is compared as one string, so a split at a different place still repeats."""
    items = [PushDataItem(q="ab", a="c"), PushDataItem(q="a", a="bc")]

    result = filter_batch(items, max_token=100, count_tokens=count_words)

    assert len(result.success) == 1
    assert len(result.repeat) == 1


def test_filter_batch_token_ceiling_is_inclusive():
    items = [PushDataItem(q=words(10)), PushDataItem(q=words(11))]

    result = filter_batch(items, max_token=10, count_tokens=count_words)

    assert [i.q for i in result.success] == [words(10)]
    assert [i.q for i in result.over_token] == [words(11)]


def test_push_item_treats_missing_text_as_empty():
    item = PushDataItem.model_validate({"q": None, "a": 42, "indexes": None})

    assert item.q == ""
    assert item.a == ""
    assert item.indexes == []
    assert filter_batch([item], 10, count_words).error == [item]


def test_filter_batch_counts_only_nonempty_questions():
    seen: list[str] = []

    def counter(texts):
        seen.extend(texts)
        return count_words(texts)

    filter_batch([PushDataItem(q=""), PushDataItem(q="hello")], 10, counter)

    assert seen == ["hello"]


# =============================================================================
# IntakeService.push_data
# =============================================================================


@pytest.mark.asyncio
async def test_push_three_records_one_malformed(session, collection, test_settings):
    """Batch of 3 with one empty question: 1 malformed, 2 inserted."""
    intake = make_intake(session, test_settings)
    data = [
        PushDataItem(q="first question", a="first answer"),
        PushDataItem(q="", a="no question"),
        PushDataItem(q="second question", a="second answer"),
    ]

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=data,
    )

    assert result.inserted_count == 2
    assert len(result.error) == 1
    assert result.error[0].a == "no question"
    assert result.over_token == []
    assert result.repeat == []
    assert result.inserted_count + result.rejected_count == len(data)


@pytest.mark.asyncio
async def test_push_inserts_never_leased_tasks(session, collection, test_settings):
    intake = make_intake(session, test_settings)

    await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=[PushDataItem(q="hello", a="world", indexes=[{"text": "hello"}])],
        bill_id="bill-1",
    )

    tasks = await TrainingTaskRepository(session).list(TEAM_ID, LEASE_WINDOW)
    assert len(tasks) == 1
    task = tasks[0]
    assert task.lease_until == NEVER_LEASED
    assert task.version == 0
    assert task.state(LEASE_WINDOW) == TaskState.PENDING
    assert task.mode == TrainingMode.CHUNK
    assert task.model == collection.vector_model
    assert task.dataset_id == collection.dataset_id
    assert task.indexes == [{"text": "hello"}]
    assert task.bill_id == "bill-1"


@pytest.mark.asyncio
async def test_push_duplicates_within_batch(session, collection, test_settings):
    intake = make_intake(session, test_settings)
    data = [PushDataItem(q="same", a="pair")] * 3 + [PushDataItem(q="other")]

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=data,
    )

    assert result.inserted_count == 2
    assert len(result.repeat) == 2


@pytest.mark.asyncio
async def test_push_duplicates_across_batches_are_accepted(session, collection, test_settings):
    """Dedup is batch-local: the same record pushed twice is queued twice."""
    intake = make_intake(session, test_settings)
    for _ in range(2):
        result = await intake.push_data(
            team_id=TEAM_ID,
            tmb_id=MEMBER_ID,
            collection_id=collection.collection_id,
            data=[PushDataItem(q="same", a="pair")],
        )
        assert result.inserted_count == 1

    tasks = await TrainingTaskRepository(session).list(TEAM_ID, LEASE_WINDOW)
    assert len(tasks) == 2


@pytest.mark.asyncio
async def test_push_chunk_ceiling_uses_vector_model(session, collection, test_settings):
    """chunk mode: 1.5 x max_token of the dataset's vector model (3000 -> 4500)."""
    intake = make_intake(session, test_settings)

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=[PushDataItem(q=words(4500)), PushDataItem(q=words(4501))],
    )

    assert result.inserted_count == 1
    assert len(result.over_token) == 1
    assert len(result.over_token[0].q.split()) == 4501


@pytest.mark.asyncio
async def test_push_qa_ceiling_uses_qa_model(session, collection, test_settings):
    """qa mode: 0.8 x max_context of the QA model (16000 -> 12800)."""
    intake = make_intake(session, test_settings)

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=[PushDataItem(q=words(5000)), PushDataItem(q=words(12801))],
        mode="qa",
        prompt="Split into question/answer pairs",
    )

    assert result.inserted_count == 1
    assert len(result.over_token) == 1

    tasks = await TrainingTaskRepository(session).list(TEAM_ID, LEASE_WINDOW)
    assert tasks[0].mode == TrainingMode.QA
    assert tasks[0].model == test_settings.default_qa_model.model
    assert tasks[0].prompt == "Split into question/answer pairs"


@pytest.mark.asyncio
async def test_push_rejects_oversized_batch(session, collection, test_settings):
    intake = make_intake(session, test_settings)
    data = [PushDataItem(q=f"q{i}") for i in range(test_settings.intake_max_batch_size + 1)]

    with pytest.raises(BatchTooLarge) as exc_info:
        await intake.push_data(
            team_id=TEAM_ID,
            tmb_id=MEMBER_ID,
            collection_id=collection.collection_id,
            data=data,
        )

    assert exc_info.value.limit == 200
    tasks = await TrainingTaskRepository(session).list(TEAM_ID, LEASE_WINDOW)
    assert tasks == []


@pytest.mark.asyncio
async def test_push_accepts_full_batch(session, collection, test_settings):
    intake = make_intake(session, test_settings)
    data = [PushDataItem(q=f"q{i}") for i in range(200)]

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=data,
    )

    assert result.inserted_count == 200


@pytest.mark.asyncio
async def test_push_rejects_unknown_mode(session, collection, test_settings):
    intake = make_intake(session, test_settings)

    with pytest.raises(InvalidTrainingMode):
        await intake.push_data(
            team_id=TEAM_ID,
            tmb_id=MEMBER_ID,
            collection_id=collection.collection_id,
            data=[PushDataItem(q="x")],
            mode="summary",
        )


@pytest.mark.asyncio
async def test_push_unknown_collection(session, collection, test_settings):
    intake = make_intake(session, test_settings)

    with pytest.raises(CollectionNotFound):
        await intake.push_data(
            team_id=TEAM_ID,
            tmb_id=MEMBER_ID,
            collection_id=uuid4(),
            data=[PushDataItem(q="x")],
        )


@pytest.mark.asyncio
async def test_push_other_teams_collection_not_found(session, collection, test_settings):
    intake = make_intake(session, test_settings)

    with pytest.raises(CollectionNotFound):
        await intake.push_data(
            team_id=OTHER_TEAM_ID,
            tmb_id=MEMBER_ID,
            collection_id=collection.collection_id,
            data=[PushDataItem(q="x")],
        )


@pytest.mark.asyncio
async def test_push_wakes_queue_once(session, collection, test_settings):
    wake = WakeRecorder()
    intake = make_intake(session, test_settings, wake=wake)

    await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=[PushDataItem(q=f"q{i}") for i in range(10)],
    )

    assert wake.calls == 1


@pytest.mark.asyncio
async def test_push_nothing_inserted_does_not_wake(session, collection, test_settings):
    wake = WakeRecorder()
    intake = make_intake(session, test_settings, wake=wake)

    result = await intake.push_data(
        team_id=TEAM_ID,
        tmb_id=MEMBER_ID,
        collection_id=collection.collection_id,
        data=[PushDataItem(q=""), PushDataItem(q="")],
    )

    assert result.inserted_count == 0
    assert wake.calls == 0

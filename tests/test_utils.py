"""
Text, token and model helper tests.
"""

from datetime import timedelta
from uuid import uuid4

from vectorqueue.models import TaskState, TrainingTask
from vectorqueue.utils.text import sanitize_text
from vectorqueue.utils.time import NEVER_LEASED, POISONED_UNTIL, SUSPENDED_UNTIL, utc_now
from vectorqueue.utils.tokens import count_prompt_tokens, count_prompt_tokens_batch


def test_sanitize_replaces_low_control_characters():
    assert sanitize_text("a\x00b\x08c\td\ne") == "a b c\td\ne"
    assert sanitize_text(None) == ""
    assert sanitize_text("") == ""


def test_token_counts():
    assert count_prompt_tokens("") == 0
    assert count_prompt_tokens("hello world") > 0
    assert count_prompt_tokens_batch(["hello world", "hello"]) == [
        count_prompt_tokens("hello world"),
        count_prompt_tokens("hello"),
    ]
    assert count_prompt_tokens("<|endoftext|>") > 0


def make_task(lease_until):
    now = utc_now()
    return TrainingTask(
        task_id=uuid4(),
        team_id="t",
        tmb_id="m",
        dataset_id=uuid4(),
        collection_id=uuid4(),
        model="m",
        q="q",
        lease_until=lease_until,
        created_at=now,
        updated_at=now,
    )


def test_task_state_from_lease_marker():
    window = timedelta(seconds=60)
    now = utc_now()

    assert make_task(NEVER_LEASED).state(window, now) == TaskState.PENDING
    assert make_task(now - timedelta(seconds=61)).state(window, now) == TaskState.PENDING
    assert make_task(now - timedelta(seconds=10)).state(window, now) == TaskState.LEASED
    assert make_task(POISONED_UNTIL).state(window, now) == TaskState.POISONED
    assert make_task(SUSPENDED_UNTIL).state(window, now) == TaskState.SUSPENDED

"""
Concurrency governor tests.
"""

import pytest

from vectorqueue.engine.governor import ConcurrencyGovernor


def test_admit_up_to_limit():
    governor = ConcurrencyGovernor(max_in_flight=2)

    assert governor.try_admit() is True
    assert governor.try_admit() is True
    assert governor.try_admit() is False
    assert governor.in_flight == 2
    assert governor.available == 0


def test_release_reopens_slot():
    governor = ConcurrencyGovernor(max_in_flight=1)
    assert governor.try_admit()
    assert not governor.try_admit()

    governor.release()

    assert governor.in_flight == 0
    assert governor.try_admit()


def test_release_is_floored_at_zero():
    """A stray release must not open a slot beyond the limit."""
    governor = ConcurrencyGovernor(max_in_flight=1)

    governor.release()

    assert governor.in_flight == 0
    assert governor.available == 1
    assert governor.try_admit()
    assert not governor.try_admit()


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        ConcurrencyGovernor(max_in_flight=0)

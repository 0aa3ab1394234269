"""Unit tests for the adaptive timeout schedule."""

from __future__ import annotations

import itertools
import random

import pytest

from portsync.utils.backoff import MAX_TIMEOUT, MIN_TIMEOUT, AdaptiveTimeout

pytestmark = [pytest.mark.unit]


def test_defaults_start_at_minimum():
    """A fresh schedule probes at the minimum cadence."""
    schedule = AdaptiveTimeout()

    assert schedule.current == MIN_TIMEOUT == 0.25
    assert schedule.max_timeout == MAX_TIMEOUT == 300.0


def test_failures_double_until_capped():
    """After i failures the timeout is min(min * 2**i, max)."""
    schedule = AdaptiveTimeout()

    for i in range(1, 15):
        schedule.on_failure()
        assert schedule.current == min(MIN_TIMEOUT * 2**i, MAX_TIMEOUT)

    assert schedule.current == MAX_TIMEOUT


def test_first_failure_doubles_quarter_second():
    """250ms becomes 500ms after one failure."""
    schedule = AdaptiveTimeout()

    assert schedule.on_failure() == 0.5


def test_successes_halve_down_to_minimum():
    """Successes converge back to min and never go below it."""
    schedule = AdaptiveTimeout(current=MAX_TIMEOUT)

    previous = schedule.current
    for _ in range(20):
        schedule.on_success()
        assert schedule.current == max(previous / 2, MIN_TIMEOUT)
        previous = schedule.current

    assert schedule.current == MIN_TIMEOUT


def test_success_at_minimum_stays_at_minimum():
    """Halving at the floor is a no-op."""
    schedule = AdaptiveTimeout()

    assert schedule.on_success() == MIN_TIMEOUT


@pytest.mark.parametrize("seed", range(5))
def test_timeout_stays_within_bounds(seed):
    """Any sequence of outcomes keeps min <= current <= max."""
    rng = random.Random(seed)
    schedule = AdaptiveTimeout(min_timeout=0.1, max_timeout=12.0)

    for _ in range(500):
        if rng.random() < 0.5:
            schedule.on_success()
        else:
            schedule.on_failure()
        assert 0.1 <= schedule.current <= 12.0


def test_state_survives_mixed_outcomes():
    """Backoff is not reset by a single success."""
    schedule = AdaptiveTimeout()

    for _ in itertools.repeat(None, 4):
        schedule.on_failure()
    assert schedule.current == 4.0

    schedule.on_success()
    assert schedule.current == 2.0


def test_starting_value_is_clamped():
    """An out-of-range starting value is clamped into the bounds."""
    assert AdaptiveTimeout(1.0, 10.0, current=100.0).current == 10.0
    assert AdaptiveTimeout(1.0, 10.0, current=0.5).current == 1.0


def test_invalid_bounds_rejected():
    """Bounds must be positive and ordered."""
    with pytest.raises(ValueError, match="positive"):
        AdaptiveTimeout(min_timeout=0)
    with pytest.raises(ValueError, match="smaller"):
        AdaptiveTimeout(min_timeout=5.0, max_timeout=1.0)


def test_snapshot_is_immutable_copy():
    """Snapshots do not follow later changes."""
    schedule = AdaptiveTimeout()
    snapshot = schedule.snapshot()

    schedule.on_failure()

    assert snapshot.current == 0.25
    assert schedule.snapshot().current == 0.5
    with pytest.raises(AttributeError):
        snapshot.current = 1.0  # type: ignore[misc]

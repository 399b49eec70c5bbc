"""Tests for do_with_retry."""

import pytest

from network_harness.exceptions import FatalError, MaxRetriesExceeded
from network_harness.retry import do_with_retry


def test_returns_first_success_and_sleeps_between_failures():
    attempts = []
    sleeps = []

    def action():
        attempts.append(1)
        if len(attempts) < 3:
            raise RuntimeError("not yet")
        return "done"

    result = do_with_retry("flaky", 5, 2.0, action, sleep=sleeps.append)

    assert result == "done"
    assert len(attempts) == 3
    assert sleeps == [2.0, 2.0]


def test_raises_after_budget_with_last_error():
    sleeps = []

    def action():
        raise ValueError("still broken")

    with pytest.raises(MaxRetriesExceeded) as exc:
        do_with_retry("always broken", 3, 1.0, action, sleep=sleeps.append)

    assert exc.value.max_retries == 3
    assert isinstance(exc.value.last_error, ValueError)
    assert "always broken" in str(exc.value)
    assert "still broken" in str(exc.value)
    # no pause after the final attempt
    assert sleeps == [1.0, 1.0]


def test_fatal_error_stops_immediately():
    attempts = []

    def action():
        attempts.append(1)
        raise FatalError("give up")

    with pytest.raises(FatalError):
        do_with_retry("fatal", 10, 0, action, sleep=lambda s: None)

    assert len(attempts) == 1

#!/usr/bin/env python3
"""
Unit tests for SleepWaitStrategy.
"""

import pytest

from asset_transforms.enums import WaitResult
from asset_transforms.utils.wait_strategy import SleepWaitStrategy


@pytest.mark.unit
class TestSleepWaitStrategy:
    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def strategy(self, sleeps):
        return SleepWaitStrategy(sleeper=sleeps.append)

    def test_stops_when_check_succeeds(self, strategy, sleeps):
        answers = iter([False, False, True])

        outcome = strategy.wait(lambda: next(answers), max_attempts=10, interval=0.5)

        assert outcome.satisfied
        assert outcome.result == WaitResult.SATISFIED
        assert outcome.attempts == 3
        assert sleeps == [0.5, 0.5, 0.5]

    def test_exhausts_after_max_attempts(self, strategy, sleeps):
        outcome = strategy.wait(lambda: False, max_attempts=4, interval=1.0)

        assert not outcome.satisfied
        assert outcome.result == WaitResult.EXHAUSTED
        assert outcome.attempts == 4
        assert len(sleeps) == 4

    def test_sleeps_before_first_check(self, strategy, sleeps):
        def check():
            assert sleeps, "check ran before the first sleep"
            return True

        assert strategy.wait(check, max_attempts=1, interval=0.1).satisfied

    def test_check_exceptions_propagate(self, strategy):
        def check():
            raise RuntimeError("row vanished")

        with pytest.raises(RuntimeError, match="row vanished"):
            strategy.wait(check, max_attempts=3, interval=0.1)

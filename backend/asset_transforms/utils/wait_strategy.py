# backend/asset_transforms/utils/wait_strategy.py
"""
Wait strategies for polling shared state.

The generation coordinator waits on rows another worker has claimed. How it
waits (blocking sleep, a fake clock in tests) is pluggable through the
WaitStrategy protocol.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from ..enums import WaitResult


@dataclass(frozen=True)
class WaitOutcome:
    """Result of a wait: how many checks ran and whether one succeeded."""

    result: WaitResult
    attempts: int

    @property
    def satisfied(self) -> bool:
        return self.result == WaitResult.SATISFIED


class WaitStrategy(Protocol):
    def wait(
        self,
        check: Callable[[], bool],
        max_attempts: int,
        interval: float,
    ) -> WaitOutcome:
        """
        Call check until it returns True or max_attempts is reached.

        Exceptions raised by check propagate to the caller unchanged.
        """
        ...


class SleepWaitStrategy:
    """Blocking wait that sleeps before every check."""

    def __init__(self, sleeper: Optional[Callable[[float], None]] = None):
        self._sleep = sleeper or time.sleep

    def wait(
        self,
        check: Callable[[], bool],
        max_attempts: int,
        interval: float,
    ) -> WaitOutcome:
        for attempt in range(1, max_attempts + 1):
            self._sleep(interval)
            if check():
                return WaitOutcome(WaitResult.SATISFIED, attempt)
        return WaitOutcome(WaitResult.EXHAUSTED, max_attempts)

from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class GameTimer:
    """Accumulates play time from a monotonic clock.

    The timer sits idle until the first article finishes loading, pauses while
    later articles load, and stops for good once the game is won. Every
    transition is idempotent, so repeated or dropped events cannot double-count.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._state = TimerState.IDLE
        self._accumulated = 0.0
        self._running_since: Optional[float] = None

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def started(self) -> bool:
        return self._state is not TimerState.IDLE

    def resume(self) -> None:
        """Start on first call, resume after a pause; no-op when running or stopped."""
        if self._state in (TimerState.IDLE, TimerState.PAUSED):
            if self._state is TimerState.IDLE:
                logger.debug("Timer started")
            self._running_since = self._clock()
            self._state = TimerState.RUNNING

    def pause(self) -> None:
        if self._state is TimerState.RUNNING:
            self._bank()
            self._state = TimerState.PAUSED

    def stop(self) -> None:
        if self._state is TimerState.RUNNING:
            self._bank()
        self._state = TimerState.STOPPED

    @property
    def elapsed(self) -> float:
        if self._state is TimerState.RUNNING and self._running_since is not None:
            return self._accumulated + (self._clock() - self._running_since)
        return self._accumulated

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds, as shown to the player and used for scoring."""
        return int(math.floor(self.elapsed))

    def _bank(self) -> None:
        if self._running_since is not None:
            self._accumulated += self._clock() - self._running_since
            self._running_since = None

"""Wall-clock-anchored countdowns for the overall quiz and each question.

Remaining time is always derived from the anchor timestamp when a countdown is
mounted, so a reload or a suspended event loop recomputes the correct value
instead of restarting the count. Between mounts the countdown is decremented
by exactly one second per tick.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
import math
from typing import Callable, Hashable

from proctor_quiz.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

ExpiryCallback = Callable[[], None]


def compute_remaining_seconds(total_seconds: int, started_at: datetime, now: datetime) -> int:
    """Seconds left of a countdown anchored at ``started_at``, clamped at zero."""
    elapsed = math.floor((now - started_at).total_seconds())
    return max(0, total_seconds - max(0, elapsed))


def per_question_seconds(total_seconds: int, question_count: int, minimum: int = 10) -> int:
    if question_count <= 0:
        raise ValueError("Question count must be positive.")
    return max(minimum, total_seconds // question_count)


class _Countdown:
    def __init__(self, on_expire: ExpiryCallback) -> None:
        self._on_expire = on_expire
        self._remaining: int = 0
        self._fired: bool = False
        self._suspended: bool = False

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def has_fired(self) -> bool:
        return self._fired

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    def suspend(self) -> None:
        self._suspended = True

    def tick(self) -> None:
        if self._suspended or self._fired:
            return
        self._remaining = max(0, self._remaining - 1)
        self._check_expired()

    def _check_expired(self) -> None:
        if self._remaining > 0 or self._fired or self._suspended:
            return
        self._fired = True
        self._on_expire()


class OverallCountdown(_Countdown):
    """Countdown for the whole quiz, anchored to the session's ``started_at``."""

    def __init__(
        self,
        total_seconds: int,
        started_at: datetime,
        on_expire: ExpiryCallback,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(on_expire)
        if total_seconds <= 0:
            raise ValueError("Total time limit must be positive.")
        self._total_seconds = total_seconds
        self._started_at = started_at
        self._clock = clock

    @property
    def total_seconds(self) -> int:
        return self._total_seconds

    def mount(self) -> int:
        """Recompute remaining time from the anchor; fires at once if already expired."""
        self._remaining = compute_remaining_seconds(self._total_seconds, self._started_at, self._clock())
        self._check_expired()
        return self._remaining


class QuestionCountdown(_Countdown):
    """Per-question countdown.

    Resets whenever the tracked question key changes. Moving away from a
    question and back counts as a change, so each visit gets the full budget.
    """

    def __init__(self, seconds_per_question: int, on_expire: ExpiryCallback) -> None:
        super().__init__(on_expire)
        if seconds_per_question <= 0:
            raise ValueError("Per-question time must be positive.")
        self._seconds_per_question = seconds_per_question
        self._key: Hashable | None = None

    @property
    def seconds_per_question(self) -> int:
        return self._seconds_per_question

    @property
    def key(self) -> Hashable | None:
        return self._key

    def track(self, key: Hashable) -> bool:
        """Follow the active question; returns True when the countdown was reset."""
        if key == self._key:
            return False
        self._key = key
        self._remaining = self._seconds_per_question
        self._fired = False
        return True


class CountdownTicker:
    """Drives countdowns once per tick on the running event loop."""

    def __init__(self, countdowns: list[_Countdown], tick_seconds: float = 1.0, name: str = "ticker") -> None:
        self._countdowns = countdowns
        self._tick_seconds = tick_seconds
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self._name)

    def stop(self) -> None:
        for countdown in self._countdowns:
            countdown.suspend()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def tick_all(self) -> None:
        for countdown in list(self._countdowns):
            countdown.tick()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            try:
                self.tick_all()
            except Exception:
                logger.exception("Countdown tick failed in %s", self._name)
            if all(countdown.is_suspended for countdown in self._countdowns):
                return

"""State machine that owns a single quiz session record."""

from __future__ import annotations

import logging
from typing import Callable

from proctor_quiz.core.models import (
    QuizSession,
    SessionSnapshot,
    SessionState,
    TerminationReason,
)
from proctor_quiz.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

ChangeListener = Callable[[SessionSnapshot], None]


class QuizSessionMachine:
    """Single writer of a QuizSession.

    Every operation returns the resulting snapshot. Operations on a completed
    session are ignored rather than raised, so callers inspect the snapshot to
    learn whether anything changed.
    """

    def __init__(
        self,
        session: QuizSession,
        clock: Clock = utc_now,
        on_change: ChangeListener | None = None,
    ) -> None:
        if not session.questions:
            raise ValueError("A quiz session needs at least one question.")
        self._session = session
        self._clock = clock
        self._listeners: list[ChangeListener] = []
        self._completion_listeners: list[ChangeListener] = []
        if on_change is not None:
            self._listeners.append(on_change)

    @property
    def session_id(self) -> str:
        return self._session.id

    @property
    def is_completed(self) -> bool:
        return self._session.is_completed

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def question_count(self) -> int:
        return len(self._session.questions)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot.from_session(self._session)

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def add_completion_listener(self, listener: ChangeListener) -> None:
        self._completion_listeners.append(listener)

    # --- Lifecycle ---

    def activate(self) -> SessionSnapshot:
        """Load the session for active play.

        The first activation of a timed session stamps the anchor timestamp;
        later activations (resume after reload) keep it.
        """
        session = self._session
        if session.is_completed:
            return self._ignored("activate")
        if session.state is SessionState.IN_PROGRESS:
            return self.snapshot()
        if session.total_time_limit_seconds is not None and session.started_at is None:
            session.started_at = self._clock()
            session.state = SessionState.STARTED
            logger.info("Session %s started at %s", session.id, session.started_at.isoformat())
        session.state = SessionState.IN_PROGRESS
        return self._changed()

    # --- Answers & navigation ---

    def answer(self, question_id: str, value: str) -> SessionSnapshot:
        if self._session.is_completed:
            return self._ignored("answer")
        question = next((q for q in self._session.questions if q.id == question_id), None)
        if question is None:
            raise ValueError(f"Unknown question id {question_id!r}.")
        question.user_answer = value
        return self._changed()

    def next(self) -> SessionSnapshot:
        return self.navigate_to(self._session.current_question_index + 1)

    def previous(self) -> SessionSnapshot:
        return self.navigate_to(self._session.current_question_index - 1)

    def navigate_to(self, index: int) -> SessionSnapshot:
        if self._session.is_completed:
            return self._ignored("navigate")
        if not 0 <= index < len(self._session.questions):
            return self.snapshot()
        if index == self._session.current_question_index:
            return self.snapshot()
        self._session.current_question_index = index
        return self._changed()

    def is_on_last_question(self) -> bool:
        return self._session.current_question_index == len(self._session.questions) - 1

    # --- Flags & completion ---

    def record_flag(self) -> SessionSnapshot:
        if self._session.is_completed:
            return self._ignored("record_flag")
        self._session.cheating_flag_count += 1
        return self._changed()

    def submit(self, reason: TerminationReason = TerminationReason.COMPLETED) -> SessionSnapshot:
        session = self._session
        if session.is_completed:
            return self._ignored("submit")

        score = 0
        for question in session.questions:
            question.is_correct = question.user_answer == question.correct_option
            if question.is_correct:
                score += 1

        session.score = score
        session.completed_at = self._clock()
        session.termination_reason = reason
        session.state = SessionState.COMPLETED
        if session.started_at is not None:
            elapsed = session.completed_at - session.started_at
            session.total_time_taken_seconds = max(0, int(elapsed.total_seconds()))

        logger.info(
            "Session %s completed (%s) with score %d/%d",
            session.id,
            reason.value,
            score,
            len(session.questions),
        )
        snapshot = self._changed()
        for listener in list(self._completion_listeners):
            listener(snapshot)
        return snapshot

    # --- Internal helpers ---

    def _changed(self) -> SessionSnapshot:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def _ignored(self, operation: str) -> SessionSnapshot:
        logger.debug("Ignoring %s on completed session %s", operation, self._session.id)
        return self.snapshot()

"""Counts integrity flags and enforces the termination threshold."""

from __future__ import annotations

import logging
from typing import Callable

from proctor_quiz.core.models import ActivityLogEntry, IntegrityEvent, NoticeLevel, TerminationReason
from proctor_quiz.core.ports import PersistencePort
from proctor_quiz.core.services.event_bus import IntegrityEventBus
from proctor_quiz.core.services.notice_board import NoticeBoard
from proctor_quiz.core.services.session_machine import QuizSessionMachine
from proctor_quiz.utils.async_tasks import fire_and_forget

logger = logging.getLogger(__name__)

_EVENT_LABELS = {
    "tab_switch": "Switching tabs or windows",
    "clipboard_copy": "Copying",
    "clipboard_paste": "Pasting",
    "clipboard_cut": "Cutting",
    "context_menu": "Opening the context menu",
    "motion_detected": "Unusual movement on camera",
}


class FlagAggregator:
    """Consumes every integrity event of one session.

    All events weigh the same. The counter keeps growing after termination for
    audit purposes, but the session is only submitted the first time the limit
    is reached.
    """

    def __init__(
        self,
        machine: QuizSessionMachine,
        persistence: PersistencePort,
        notices: NoticeBoard,
        limit: int = 3,
        user_id: str | None = None,
        on_log_failure: Callable[[ActivityLogEntry], None] | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("Flag limit must be at least 1.")
        self._machine = machine
        self._persistence = persistence
        self._notices = notices
        self._limit = limit
        self._user_id = user_id
        self._on_log_failure = on_log_failure
        self._count: int = 0
        self._termination_triggered: bool = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def count(self) -> int:
        return self._count

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def termination_triggered(self) -> bool:
        return self._termination_triggered

    def attach(self, bus: IntegrityEventBus) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = bus.subscribe(self.record)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def restore(self, count: int) -> None:
        """Resume the counter from a stored session."""
        self._count = max(self._count, count)

    def record(self, event: IntegrityEvent) -> None:
        self._count += 1
        session_id = self._machine.session_id
        logger.warning(
            "Flag %d/%d for session %s: %s",
            self._count,
            self._limit,
            session_id,
            event.kind.value,
        )
        fire_and_forget(
            self._append_log(ActivityLogEntry(self._user_id, session_id, event.kind.value, event.detail)),
            description=f"activity-log:{session_id}:{event.kind.value}",
        )

        if self._termination_triggered or self._machine.is_completed:
            return

        self._machine.record_flag()
        label = _EVENT_LABELS.get(event.kind.value, event.kind.value)
        if self._count >= self._limit:
            self._termination_triggered = True
            self._notices.post(
                session_id,
                NoticeLevel.TERMINATION,
                "Quiz terminated",
                f"The quiz was ended because of suspected cheating ({self._count}/{self._limit} flags).",
            )
            self._machine.submit(TerminationReason.CHEATING)
            return

        self._notices.warn(
            session_id,
            "Integrity warning",
            f"{label} is not allowed during the quiz. Warning {self._count}/{self._limit}.",
        )

    async def _append_log(self, entry: ActivityLogEntry) -> None:
        try:
            await self._persistence.append_activity_log(entry.user_id, entry.session_id, entry.event_kind, entry.detail)
        except Exception as exc:
            logger.warning("Activity log write failed for session %s: %s", entry.session_id, exc)
            if self._on_log_failure is not None:
                self._on_log_failure(entry)

"""Replays buffered offline answers and activity-log entries into the persistence sink."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from proctor_quiz.core.models import ActivityLogEntry, SyncReport
from proctor_quiz.core.ports import PersistencePort
from proctor_quiz.core.services.connectivity import ConnectivityMonitor
from proctor_quiz.core.services.notice_board import NoticeBoard
from proctor_quiz.core.services.offline_buffer import OfflineAnswerBuffer
from proctor_quiz.utils.async_tasks import fire_and_forget

logger = logging.getLogger(__name__)


class SyncManager:
    """Drains the offline buffer whenever the device comes back online.

    Delivery is at-least-once: a session's replayed pairs are discarded only
    after every buffered answer of that session was accepted, so a failure
    part-way through replays the whole session next time. The sink's upsert
    keyed by question id absorbs the duplicates. Pairs buffered or changed
    while a pass is in flight are left for the next pass.

    Activity-log writes that failed earlier are queued here and replayed after
    the answers.
    """

    def __init__(
        self,
        buffer: OfflineAnswerBuffer,
        persistence: PersistencePort,
        resolve_user: Callable[[str], str | None] = lambda session_id: None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self._buffer = buffer
        self._persistence = persistence
        self._resolve_user = resolve_user
        self._notices = notices
        self._lock = asyncio.Lock()
        self._pending_activity: list[ActivityLogEntry] = []
        self._remove_listener: Callable[[], None] | None = None
        self._last_report: SyncReport | None = None

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    @property
    def pending_activity(self) -> list[ActivityLogEntry]:
        return list(self._pending_activity)

    def attach(self, connectivity: ConnectivityMonitor) -> None:
        """Sync on every online transition, and once now if already online."""
        if self._remove_listener is not None:
            return
        self._remove_listener = connectivity.add_online_listener(self.schedule_sync)
        if connectivity.is_online:
            self.schedule_sync()

    def detach(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def queue_activity(self, entry: ActivityLogEntry) -> None:
        self._pending_activity.append(entry)
        logger.info("Queued activity-log entry %s for session %s", entry.event_kind, entry.session_id)

    def forget_session(self, session_id: str) -> None:
        self._pending_activity = [entry for entry in self._pending_activity if entry.session_id != session_id]

    def schedule_sync(self) -> None:
        if not self._buffer.has_pending() and not self._pending_activity:
            return
        fire_and_forget(self.sync(), description="offline-sync")

    async def sync(self) -> SyncReport:
        async with self._lock:
            report = SyncReport()
            for session_id in self._buffer.session_ids():
                answers = self._buffer.get(session_id)
                user_id = self._resolve_user(session_id)
                try:
                    for question_id, answer in answers.items():
                        await self._persistence.upsert_answer(user_id, session_id, question_id, answer)
                        report.synced_pairs += 1
                except Exception as exc:
                    report.failed_session = session_id
                    logger.warning("Offline sync failed for session %s: %s", session_id, exc)
                    if self._notices is not None:
                        self._notices.warn(
                            session_id,
                            "Offline sync error",
                            "Some answers could not be saved yet. They will be retried when you are back online.",
                        )
                    break
                self._buffer.discard(session_id, answers)
                logger.info("Synced %d offline answer(s) for session %s", len(answers), session_id)
                if self._buffer.has_pending(session_id):
                    logger.info("Session %s buffered newer answers during sync; keeping them", session_id)
                else:
                    report.cleared_sessions.append(session_id)
            await self._replay_activity(report)
            self._last_report = report
            return report

    async def _replay_activity(self, report: SyncReport) -> None:
        for entry in list(self._pending_activity):
            try:
                await self._persistence.append_activity_log(
                    entry.user_id,
                    entry.session_id,
                    entry.event_kind,
                    entry.detail,
                )
            except Exception as exc:
                logger.warning("Activity-log replay failed for session %s: %s", entry.session_id, exc)
                return
            self._pending_activity.remove(entry)
            report.replayed_log_entries += 1

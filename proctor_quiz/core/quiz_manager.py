"""Business logic shared between the API and the background tasks."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from threading import RLock
from uuid import uuid4

from proctor_quiz.constants.quiz_constants import (
    DIFFICULTY_LEVELS,
    MAX_QUESTIONS,
    MIN_QUESTIONS,
    OPTIONS_PER_QUESTION,
)
from proctor_quiz.core.errors import CameraUnavailableError, QuestionGenerationError, SessionNotFoundError
from proctor_quiz.core.models import (
    GeneratedQuestion,
    IntegrityEvent,
    Notice,
    NoticeAction,
    NoticeLevel,
    Question,
    QuizSession,
    SessionSnapshot,
    SyncReport,
    TerminationReason,
)
from proctor_quiz.core.ports import CameraPort, PersistencePort, QuestionGenerator, SpeechPort
from proctor_quiz.core.quiz_exporter import save_question_set_to_file
from proctor_quiz.core.services.connectivity import ConnectivityMonitor
from proctor_quiz.core.services.event_bus import IntegrityEventBus
from proctor_quiz.core.services.flag_aggregator import FlagAggregator
from proctor_quiz.core.services.motion_detector import MotionDetector
from proctor_quiz.core.services.notice_board import NoticeBoard
from proctor_quiz.core.services.offline_buffer import OfflineAnswerBuffer
from proctor_quiz.core.services.proctoring_monitor import (
    BrowserSignal,
    ProctoringMonitor,
    SignalVerdict,
    integrity_event_kind,
)
from proctor_quiz.core.services.session_machine import QuizSessionMachine
from proctor_quiz.core.services.snapshot_store import SnapshotStore
from proctor_quiz.core.services.speech import SpeechReader
from proctor_quiz.core.services.sync_manager import SyncManager
from proctor_quiz.core.services.timers import (
    CountdownTicker,
    OverallCountdown,
    QuestionCountdown,
    per_question_seconds,
)
from proctor_quiz.core.settings import ProctorSettings
from proctor_quiz.utils.async_tasks import fire_and_forget
from proctor_quiz.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TimerStatus:
    overall_remaining_seconds: int | None = None
    question_remaining_seconds: int | None = None


@dataclass(slots=True)
class SessionRuntime:
    """Everything that runs while a session is open for active play."""

    bus: IntegrityEventBus
    monitor: ProctoringMonitor
    aggregator: FlagAggregator
    overall: OverallCountdown | None = None
    question: QuestionCountdown | None = None
    ticker: CountdownTicker | None = None

    def teardown(self) -> None:
        if self.ticker is not None:
            self.ticker.stop()
        self.aggregator.detach()
        self.monitor.close()


class QuizManager:
    """Facade over the session machines, proctoring, timers and offline sync."""

    def __init__(
        self,
        generator: QuestionGenerator,
        persistence: PersistencePort,
        camera: CameraPort,
        settings: ProctorSettings | None = None,
        connectivity: ConnectivityMonitor | None = None,
        speech: SpeechPort | None = None,
        clock: Clock = utc_now,
    ) -> None:
        # Route handlers and background tasks share one event loop. Critical
        # sections never await, so the lock is never held across a suspension.
        self._lock = RLock()
        self._settings = settings or ProctorSettings()
        self._generator = generator
        self._persistence = persistence
        self._camera = camera
        self._clock = clock

        # Services
        self._snapshots = SnapshotStore(self._settings.active_snapshot_dir, self._settings.archive_snapshot_dir)
        self._buffer = OfflineAnswerBuffer(self._settings.offline_buffer_path)
        self._notices = NoticeBoard(clock)
        self._connectivity = connectivity or ConnectivityMonitor()
        self._sync = SyncManager(
            self._buffer,
            persistence,
            resolve_user=self._resolve_user,
            notices=self._notices,
        )
        self._speech = SpeechReader(speech, self._notices)

        self._machines: dict[str, QuizSessionMachine] = {}
        self._runtimes: dict[str, SessionRuntime] = {}
        self._aggregators: dict[str, FlagAggregator] = {}
        self._events: dict[str, list[IntegrityEvent]] = {}

    @property
    def settings(self) -> ProctorSettings:
        return self._settings

    @property
    def connectivity(self) -> ConnectivityMonitor:
        return self._connectivity

    @property
    def sync_manager(self) -> SyncManager:
        return self._sync

    @property
    def offline_buffer(self) -> OfflineAnswerBuffer:
        return self._buffer

    # --- Background services ---

    def start(self, watch_connectivity: bool = False) -> None:
        """Hook the sync manager to connectivity changes (syncs at once when online)."""
        self._sync.attach(self._connectivity)
        if watch_connectivity:
            self._connectivity.start_watching()

    def shutdown(self) -> None:
        with self._lock:
            for session_id in list(self._runtimes):
                self._teardown(session_id)
            self._sync.detach()
            self._connectivity.stop_watching()
            self._speech.stop()

    # --- Session creation & loading ---

    def create_session(
        self,
        topic: str,
        difficulty: str,
        count: int,
        subtopic: str | None = None,
        instructions: str | None = None,
        time_limit_minutes: int | None = None,
        user_id: str | None = None,
        challenger_name: str | None = None,
    ) -> SessionSnapshot:
        topic = topic.strip()
        if not topic:
            raise ValueError("Topic must not be empty.")
        if difficulty not in DIFFICULTY_LEVELS:
            raise ValueError(f"Difficulty must be one of {', '.join(DIFFICULTY_LEVELS)}.")
        if not MIN_QUESTIONS <= count <= MAX_QUESTIONS:
            raise ValueError(f"Question count must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}.")
        if time_limit_minutes is not None and time_limit_minutes <= 0:
            raise ValueError("Time limit must be a positive number of minutes.")

        generated = self._generator.generate(
            topic,
            difficulty,
            count,
            subtopic=subtopic or None,
            instructions=instructions or None,
        )
        questions = [self._prepare_question(raw) for raw in generated]
        if not questions:
            raise QuestionGenerationError("The question source returned no questions.")

        total_seconds = time_limit_minutes * 60 if time_limit_minutes else None
        session = QuizSession(
            id=uuid4().hex,
            topic=topic,
            difficulty=difficulty,
            questions=questions,
            created_at=self._clock(),
            subtopic=subtopic or None,
            additional_instructions=instructions or None,
            user_id=user_id,
            challenger_name=challenger_name,
            total_time_limit_seconds=total_seconds,
            per_question_time_seconds=(
                per_question_seconds(total_seconds, len(questions), self._settings.min_per_question_seconds)
                if total_seconds
                else None
            ),
        )
        with self._lock:
            machine = self._register_machine(session)
            snapshot = machine.snapshot()
            self._snapshots.save_active(snapshot)
        logger.info("Created session %s (%s, %s, %d questions)", session.id, topic, difficulty, len(questions))
        return snapshot

    def get_session(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._machine_for(session_id).snapshot()

    def list_sessions(self) -> list[SessionSnapshot]:
        with self._lock:
            return self._snapshots.list_sessions()

    async def load_session(self, session_id: str) -> SessionSnapshot:
        """Resolve a session from memory, local snapshots, or the persistence port."""
        with self._lock:
            try:
                return self._machine_for(session_id).snapshot()
            except SessionNotFoundError:
                pass
        remote = await self._persistence.load_session(session_id)
        if remote is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        with self._lock:
            if session_id not in self._machines:
                self._register_machine(remote.to_session())
                self._snapshots.record(remote)
            return self._machines[session_id].snapshot()

    # --- Active play ---

    async def open_session(self, session_id: str) -> SessionSnapshot:
        """Start proctoring and timers for a session. Idempotent while open."""
        await self.load_session(session_id)
        with self._lock:
            machine = self._machine_for(session_id)
            if machine.is_completed or session_id in self._runtimes:
                return machine.snapshot()

            bus = IntegrityEventBus()
            bus.subscribe(self._events.setdefault(session_id, []).append)
            monitor = ProctoringMonitor(
                session_id,
                bus,
                self._camera,
                MotionDetector(
                    sample_width=self._settings.motion_sample_width,
                    sample_height=self._settings.motion_sample_height,
                    pixel_threshold=self._settings.motion_pixel_threshold,
                    changed_ratio=self._settings.motion_changed_ratio,
                ),
                clock=self._clock,
                motion_interval_ms=self._settings.motion_interval_ms,
                on_camera_failure=lambda exc: self._on_camera_failure(session_id, exc),
            )
            try:
                monitor.activate()
            except CameraUnavailableError as exc:
                self._notices.clear_blocking(session_id)
                self._notices.block(
                    session_id,
                    "Camera access required",
                    f"This quiz is proctored and cannot start without a camera. {exc}",
                    NoticeAction.RETRY,
                )
                return machine.snapshot()
            self._notices.clear_blocking(session_id)

            aggregator = self._aggregator_for(machine)
            aggregator.attach(bus)
            runtime = SessionRuntime(bus=bus, monitor=monitor, aggregator=aggregator)
            self._runtimes[session_id] = runtime

            snapshot = machine.activate()
            if snapshot.total_time_limit_seconds and snapshot.started_at is not None:
                runtime.overall = OverallCountdown(
                    snapshot.total_time_limit_seconds,
                    snapshot.started_at,
                    on_expire=lambda: self._on_overall_time_up(session_id),
                    clock=self._clock,
                )
                runtime.question = QuestionCountdown(
                    snapshot.per_question_time_seconds or self._settings.min_per_question_seconds,
                    on_expire=lambda: self._on_question_time_up(session_id),
                )
                runtime.question.track(_question_key(snapshot))
                runtime.ticker = CountdownTicker(
                    [runtime.overall, runtime.question],
                    tick_seconds=self._settings.tick_seconds,
                    name=f"timers:{session_id}",
                )
                runtime.overall.mount()

            if machine.is_completed:
                return machine.snapshot()
            if _has_running_loop():
                if runtime.ticker is not None:
                    runtime.ticker.start()
                monitor.start_sampling()
            logger.info("Opened session %s for active play", session_id)
            return machine.snapshot()

    def close_session(self, session_id: str) -> None:
        """Stop monitoring and timers without completing the session."""
        with self._lock:
            self._teardown(session_id)

    def is_open(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._runtimes

    def tick(self, session_id: str) -> SessionSnapshot:
        """Advance the session's countdowns by one tick (what the ticker task does)."""
        with self._lock:
            runtime = self._runtimes.get(session_id)
            if runtime is not None and runtime.ticker is not None:
                runtime.ticker.tick_all()
            return self._machine_for(session_id).snapshot()

    def get_timer_status(self, session_id: str) -> TimerStatus:
        with self._lock:
            runtime = self._runtimes.get(session_id)
            if runtime is None or runtime.overall is None or runtime.question is None:
                return TimerStatus()
            return TimerStatus(
                overall_remaining_seconds=runtime.overall.remaining,
                question_remaining_seconds=runtime.question.remaining,
            )

    # --- Answers & navigation ---

    def answer(self, session_id: str, question_id: str, value: str) -> SessionSnapshot:
        with self._lock:
            machine = self._machine_for(session_id)
            was_completed = machine.is_completed
            snapshot = machine.answer(question_id, value)
            if not was_completed:
                self._forward_answer(snapshot, question_id, value)
            return snapshot

    def next_question(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._machine_for(session_id).next()

    def previous_question(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._machine_for(session_id).previous()

    def navigate_to(self, session_id: str, index: int) -> SessionSnapshot:
        with self._lock:
            return self._machine_for(session_id).navigate_to(index)

    def submit(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._machine_for(session_id).submit(TerminationReason.COMPLETED)

    # --- Proctoring ---

    def handle_signal(self, session_id: str, signal: BrowserSignal, detail: str | None = None) -> SignalVerdict:
        with self._lock:
            machine = self._machine_for(session_id)
            runtime = self._runtimes.get(session_id)
            if runtime is not None:
                return runtime.monitor.handle_signal(signal, detail)
            kind = integrity_event_kind(signal)
            if machine.is_completed and kind is not None:
                # already submitted; counted for audit only
                self._aggregator_for(machine).record(IntegrityEvent(kind, self._clock(), session_id, detail))
            return SignalVerdict(suppress=False)

    def get_flag_status(self, session_id: str) -> tuple[int, int]:
        """Return (flag count, limit); the count includes audit-only flags."""
        with self._lock:
            aggregator = self._aggregators.get(session_id)
            if aggregator is not None:
                return aggregator.count, aggregator.limit
            return self._machine_for(session_id).snapshot().cheating_flag_count, self._settings.flag_limit

    def get_integrity_events(self, session_id: str) -> list[IntegrityEvent]:
        with self._lock:
            return list(self._events.get(session_id, []))

    def is_fullscreen(self, session_id: str) -> bool:
        with self._lock:
            runtime = self._runtimes.get(session_id)
            return runtime is not None and runtime.monitor.is_fullscreen

    # --- Notices ---

    def get_notices(self, session_id: str) -> list[Notice]:
        with self._lock:
            return self._notices.get_notices(session_id)

    def dismiss_notice(self, session_id: str, notice_id: str) -> bool:
        with self._lock:
            return self._notices.dismiss(session_id, notice_id)

    # --- Connectivity ---

    def set_online(self, online: bool) -> bool:
        with self._lock:
            return self._connectivity.set_online(online)

    async def sync_now(self) -> SyncReport:
        return await self._sync.sync()

    # --- History ---

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            known = session_id in self._machines
            self._teardown(session_id)
            self._machines.pop(session_id, None)
            existed = self._snapshots.delete(session_id)
            self._buffer.clear(session_id)
            self._notices.clear(session_id)
            self._events.pop(session_id, None)
            self._aggregators.pop(session_id, None)
            self._sync.forget_session(session_id)
            if not (known or existed):
                raise SessionNotFoundError(f"Session {session_id} not found.")
            logger.info("Deleted session %s", session_id)

    def clear_completed_sessions(self) -> list[str]:
        with self._lock:
            removed = set(self._snapshots.delete_archived())
            for session_id, machine in list(self._machines.items()):
                if machine.is_completed:
                    removed.add(session_id)
                    self._machines.pop(session_id)
            for session_id in removed:
                self._buffer.clear(session_id)
                self._notices.clear(session_id)
                self._events.pop(session_id, None)
                self._aggregators.pop(session_id, None)
            return sorted(removed)

    def export_question_set(self, session_id: str, file_path: Path) -> Path:
        with self._lock:
            snapshot = self._machine_for(session_id).snapshot()
        return save_question_set_to_file(file_path, snapshot)

    def read_current_question_aloud(self, session_id: str) -> bool:
        with self._lock:
            snapshot = self._machine_for(session_id).snapshot()
            if snapshot.is_completed:
                return False
            return self._speech.read_aloud(session_id, snapshot.current_question.question_text)

    # --- Internal helpers ---

    def _register_machine(self, session: QuizSession) -> QuizSessionMachine:
        machine = QuizSessionMachine(session, clock=self._clock)
        machine.add_change_listener(self._on_session_changed)
        machine.add_completion_listener(self._on_session_completed)
        self._machines[session.id] = machine
        return machine

    def _machine_for(self, session_id: str) -> QuizSessionMachine:
        machine = self._machines.get(session_id)
        if machine is not None:
            return machine
        stored = self._snapshots.load(session_id)
        if stored is None:
            raise SessionNotFoundError(f"Session {session_id} not found.")
        return self._register_machine(stored.to_session())

    def _prepare_question(self, raw: GeneratedQuestion) -> Question:
        text = raw.question_text.strip()
        options = [option.strip() for option in raw.options]
        correct = raw.correct_option.strip()
        if not text:
            raise QuestionGenerationError("Generated question text is empty.")
        if len(options) != OPTIONS_PER_QUESTION or any(not option for option in options):
            raise QuestionGenerationError(
                f"Each generated question needs exactly {OPTIONS_PER_QUESTION} non-empty options."
            )
        if correct not in options:
            raise QuestionGenerationError(f"Correct option {correct!r} is not one of the options.")
        return Question(id=uuid4().hex, question_text=text, options=options, correct_option=correct)

    def _resolve_user(self, session_id: str) -> str | None:
        machine = self._machines.get(session_id)
        if machine is not None:
            return machine.snapshot().user_id
        stored = self._snapshots.load(session_id)
        return stored.user_id if stored is not None else None

    def _live_answer(self, session_id: str, question_id: str) -> str | None:
        machine = self._machines.get(session_id)
        if machine is None:
            return None
        for question in machine.snapshot().questions:
            if question.id == question_id:
                return question.user_answer
        return None

    def _aggregator_for(self, machine: QuizSessionMachine) -> FlagAggregator:
        """Return the session's flag aggregator; it outlives the proctoring runtime."""
        aggregator = self._aggregators.get(machine.session_id)
        if aggregator is None:
            snapshot = machine.snapshot()
            aggregator = FlagAggregator(
                machine,
                self._persistence,
                self._notices,
                limit=self._settings.flag_limit,
                user_id=snapshot.user_id,
                on_log_failure=self._sync.queue_activity,
            )
            aggregator.restore(snapshot.cheating_flag_count)
            self._aggregators[machine.session_id] = aggregator
        return aggregator

    def _forward_answer(self, snapshot: SessionSnapshot, question_id: str, value: str) -> None:
        if not self._connectivity.is_online:
            self._buffer.put(snapshot.id, question_id, value)
            return
        fire_and_forget(
            self._push_answer(snapshot.user_id, snapshot.id, question_id, value),
            description=f"upsert-answer:{snapshot.id}:{question_id}",
        )

    async def _push_answer(self, user_id: str | None, session_id: str, question_id: str, value: str) -> None:
        try:
            await self._persistence.upsert_answer(user_id, session_id, question_id, value)
        except Exception as exc:
            with self._lock:
                if self._live_answer(session_id, question_id) != value:
                    # a newer answer has its own upload
                    logger.info("Answer upload failed for %s/%s but it is stale: %s", session_id, question_id, exc)
                    return
                logger.warning("Answer upload failed for %s/%s, buffering: %s", session_id, question_id, exc)
                self._buffer.put(session_id, question_id, value)
                self._notices.warn(
                    session_id,
                    "Answer saved locally",
                    "Your answer could not be uploaded. It is kept on this device and will be synced later.",
                )

    def _on_session_changed(self, snapshot: SessionSnapshot) -> None:
        self._snapshots.record(snapshot)
        runtime = self._runtimes.get(snapshot.id)
        if runtime is not None and runtime.question is not None and not snapshot.is_completed:
            runtime.question.track(_question_key(snapshot))

    def _on_session_completed(self, snapshot: SessionSnapshot) -> None:
        self._teardown(snapshot.id)
        self._speech.stop()
        fire_and_forget(self._persistence.save_session(snapshot), description=f"save-session:{snapshot.id}")

    def _on_overall_time_up(self, session_id: str) -> None:
        machine = self._machines.get(session_id)
        if machine is None or machine.is_completed:
            return
        logger.info("Overall time is up for session %s", session_id)
        self._notices.post(session_id, NoticeLevel.TERMINATION, "Time's up", "The time limit for this quiz has been reached.")
        machine.submit(TerminationReason.TIME_UP)

    def _on_question_time_up(self, session_id: str) -> None:
        machine = self._machines.get(session_id)
        if machine is None or machine.is_completed:
            return
        if machine.is_on_last_question():
            logger.info("Time for the last question is up in session %s", session_id)
            self._notices.post(
                session_id,
                NoticeLevel.TERMINATION,
                "Time's up",
                "Time for the last question ran out, so the quiz was submitted.",
            )
            machine.submit(TerminationReason.TIME_UP)
        else:
            machine.next()

    def _on_camera_failure(self, session_id: str, exc: CameraUnavailableError) -> None:
        with self._lock:
            self._notices.block(
                session_id,
                "Camera disconnected",
                f"Proctoring lost access to the camera. Reconnect it and reload the quiz. {exc}",
                NoticeAction.RELOAD,
            )
            self._teardown(session_id)

    def _teardown(self, session_id: str) -> None:
        runtime = self._runtimes.pop(session_id, None)
        if runtime is not None:
            runtime.teardown()


def _question_key(snapshot: SessionSnapshot) -> tuple[str, int]:
    return snapshot.current_question.id, snapshot.current_question_index


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True

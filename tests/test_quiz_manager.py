import asyncio

import pytest

from proctor_quiz.core.errors import (
    CameraUnavailableError,
    QuestionGenerationError,
    SessionNotFoundError,
    SpeechUnavailableError,
)
from proctor_quiz.core.models import (
    GeneratedQuestion,
    IntegrityEventKind,
    NoticeAction,
    NoticeLevel,
    SessionState,
    TerminationReason,
)
from proctor_quiz.core.quiz_importer import load_bank_from_file
from proctor_quiz.core.quiz_manager import QuizManager
from proctor_quiz.core.settings import ProctorSettings
from proctor_quiz.core.services.proctoring_monitor import BrowserSignal

from conftest import FakeCamera


def _open(manager, session_id):
    return asyncio.run(manager.open_session(session_id))


def _ids(snapshot):
    return [question.id for question in snapshot.questions]


def test_create_session_validates_input(manager):
    with pytest.raises(ValueError):
        manager.create_session("  ", "easy", 5)
    with pytest.raises(ValueError):
        manager.create_session("python", "impossible", 5)
    with pytest.raises(ValueError):
        manager.create_session("python", "easy", 0)
    with pytest.raises(ValueError):
        manager.create_session("python", "easy", 5, time_limit_minutes=0)


def test_create_session_builds_timed_record(manager, generator):
    snapshot = manager.create_session(
        "python", "hard", 10, subtopic="async", instructions="no trivia", time_limit_minutes=5, user_id="u1"
    )

    assert snapshot.state is SessionState.CREATED
    assert snapshot.question_count == 10
    assert snapshot.total_time_limit_seconds == 300
    assert snapshot.per_question_time_seconds == 30
    assert snapshot.started_at is None
    assert generator.requests == [("python", "hard", 10, "async", "no trivia")]
    assert [s.id for s in manager.list_sessions()] == [snapshot.id]


def test_generated_questions_are_validated(persistence, camera, settings):
    class BrokenGenerator:
        def generate(self, topic, difficulty, count, subtopic=None, instructions=None):
            return [GeneratedQuestion("Q?", ["a", "b", "c", "d"], "e")]

    manager = QuizManager(BrokenGenerator(), persistence, camera, settings=settings)
    with pytest.raises(QuestionGenerationError):
        manager.create_session("python", "easy", 1)


def test_open_session_enters_in_progress(manager):
    created = manager.create_session("python", "easy", 3, time_limit_minutes=1)

    opened = _open(manager, created.id)

    assert opened.state is SessionState.IN_PROGRESS
    assert opened.started_at is not None
    assert manager.is_open(created.id)
    timers = manager.get_timer_status(created.id)
    assert timers.overall_remaining_seconds == 60
    assert timers.question_remaining_seconds == 20


def test_camera_denied_blocks_the_session(generator, persistence, settings, connectivity, clock):
    manager = QuizManager(
        generator, persistence, FakeCamera(denied=True), settings=settings, connectivity=connectivity, clock=clock
    )
    created = manager.create_session("python", "easy", 3, time_limit_minutes=1)

    opened = _open(manager, created.id)
    verdict = manager.handle_signal(created.id, BrowserSignal.VISIBILITY_HIDDEN)

    assert opened.state is SessionState.CREATED
    assert opened.started_at is None
    assert not manager.is_open(created.id)
    assert verdict.event is None
    assert manager.get_integrity_events(created.id) == []
    notices = manager.get_notices(created.id)
    assert len(notices) == 1
    assert notices[0].level is NoticeLevel.BLOCKING
    assert notices[0].action is NoticeAction.RETRY
    assert not manager.dismiss_notice(created.id, notices[0].id)


def test_retry_after_camera_grant_clears_blocking_notice(manager, camera):
    created = manager.create_session("python", "easy", 3)
    camera.denied = True
    _open(manager, created.id)
    camera.denied = False

    opened = _open(manager, created.id)

    assert opened.state is SessionState.IN_PROGRESS
    assert manager.get_notices(created.id) == []


def test_ten_questions_five_minutes_runs_out(manager, clock, persistence):
    created = manager.create_session("python", "easy", 10, time_limit_minutes=5)
    _open(manager, created.id)
    qids = _ids(created)
    manager.answer(created.id, qids[0], "a0")

    snapshot = None
    for second in range(1, 301):
        clock.advance(1)
        snapshot = manager.tick(created.id)
        if second < 300:
            assert not snapshot.is_completed

    assert snapshot.is_completed
    assert snapshot.termination_reason is TerminationReason.TIME_UP
    assert snapshot.current_question_index == 9
    assert snapshot.score == 1
    assert snapshot.total_time_taken_seconds == 300
    assert not manager.is_open(created.id)
    assert persistence.sessions[created.id].termination_reason is TerminationReason.TIME_UP
    assert any(n.level is NoticeLevel.TERMINATION for n in manager.get_notices(created.id))


def test_question_timer_auto_advances(manager, clock):
    created = manager.create_session("python", "easy", 3, time_limit_minutes=2)
    _open(manager, created.id)

    for _ in range(40):
        clock.advance(1)
        snapshot = manager.tick(created.id)

    assert snapshot.current_question_index == 1
    assert manager.get_timer_status(created.id).question_remaining_seconds == 40
    assert manager.get_timer_status(created.id).overall_remaining_seconds == 80


def test_question_timer_resets_on_revisit(manager, clock):
    created = manager.create_session("python", "easy", 3, time_limit_minutes=2)
    _open(manager, created.id)
    for _ in range(15):
        manager.tick(created.id)
    assert manager.get_timer_status(created.id).question_remaining_seconds == 25

    manager.next_question(created.id)
    assert manager.get_timer_status(created.id).question_remaining_seconds == 40
    manager.tick(created.id)
    manager.previous_question(created.id)

    assert manager.get_timer_status(created.id).question_remaining_seconds == 40


def test_last_question_expiry_submits_with_time_up(manager, clock):
    created = manager.create_session("python", "easy", 3, time_limit_minutes=2)
    _open(manager, created.id)
    manager.navigate_to(created.id, 2)

    for _ in range(40):
        snapshot = manager.tick(created.id)

    assert snapshot.termination_reason is TerminationReason.TIME_UP
    assert snapshot.current_question_index == 2


def test_reload_recomputes_remaining_time_from_anchor(manager, clock):
    created = manager.create_session("python", "easy", 5, time_limit_minutes=5)
    _open(manager, created.id)
    for _ in range(100):
        clock.advance(1)
        manager.tick(created.id)

    manager.close_session(created.id)
    clock.advance(0.4)
    _open(manager, created.id)

    assert manager.get_timer_status(created.id).overall_remaining_seconds == 200


def test_suspended_loop_does_not_stretch_the_limit(manager, clock):
    created = manager.create_session("python", "easy", 5, time_limit_minutes=5)
    _open(manager, created.id)
    for _ in range(10):
        manager.tick(created.id)
    clock.advance(120)

    manager.close_session(created.id)
    _open(manager, created.id)

    assert manager.get_timer_status(created.id).overall_remaining_seconds == 180


def test_reopening_after_the_deadline_submits_immediately(manager, clock):
    created = manager.create_session("python", "easy", 5, time_limit_minutes=1)
    _open(manager, created.id)
    manager.close_session(created.id)
    clock.advance(61)

    reopened = _open(manager, created.id)

    assert reopened.termination_reason is TerminationReason.TIME_UP
    assert not manager.is_open(created.id)


def test_three_tab_switches_end_the_quiz(manager, persistence):
    created = manager.create_session("python", "easy", 3)
    _open(manager, created.id)

    for _ in range(3):
        manager.handle_signal(created.id, BrowserSignal.VISIBILITY_HIDDEN)
    fourth = manager.handle_signal(created.id, BrowserSignal.VISIBILITY_HIDDEN)

    snapshot = manager.get_session(created.id)
    assert snapshot.termination_reason is TerminationReason.CHEATING
    assert snapshot.cheating_flag_count == 3
    assert fourth.event is None
    assert manager.get_flag_status(created.id) == (4, 3)
    assert [e.kind for e in manager.get_integrity_events(created.id)] == [IntegrityEventKind.TAB_SWITCH] * 3
    assert len(persistence.activity) == 4
    assert len(manager.get_notices(created.id)) == 3


def test_fullscreen_changes_are_never_flagged(manager):
    created = manager.create_session("python", "easy", 3)
    _open(manager, created.id)

    manager.handle_signal(created.id, BrowserSignal.FULLSCREEN_ENTER)
    assert manager.is_fullscreen(created.id)
    manager.handle_signal(created.id, BrowserSignal.FULLSCREEN_EXIT)

    assert manager.get_flag_status(created.id) == (0, 3)
    assert manager.get_integrity_events(created.id) == []


def test_clipboard_signals_are_suppressed_and_warned(manager):
    created = manager.create_session("python", "easy", 3)
    _open(manager, created.id)

    verdict = manager.handle_signal(created.id, BrowserSignal.COPY)

    assert verdict.suppress
    notices = manager.get_notices(created.id)
    assert notices[0].level is NoticeLevel.WARNING
    assert manager.dismiss_notice(created.id, notices[0].id)
    assert manager.get_notices(created.id) == []


def test_camera_failure_mid_session_blocks_without_completing(manager):
    created = manager.create_session("python", "easy", 3)
    _open(manager, created.id)

    manager._on_camera_failure(created.id, CameraUnavailableError("unplugged"))

    snapshot = manager.get_session(created.id)
    assert not snapshot.is_completed
    assert not manager.is_open(created.id)
    notice = manager.get_notices(created.id)[-1]
    assert notice.level is NoticeLevel.BLOCKING
    assert notice.action is NoticeAction.RELOAD


def test_online_answers_are_upserted(manager, persistence):
    created = manager.create_session("python", "easy", 3)
    qid = _ids(created)[0]

    manager.answer(created.id, qid, "b0")
    manager.answer(created.id, qid, "a0")

    assert persistence.answers[created.id] == {qid: "a0"}
    assert not manager.offline_buffer.has_pending()


def test_failed_upload_falls_back_to_buffer(manager, persistence):
    created = manager.create_session("python", "easy", 3)
    qid = _ids(created)[0]
    persistence.fail_upserts_for.add(qid)

    manager.answer(created.id, qid, "a0")

    assert manager.offline_buffer.get(created.id) == {qid: "a0"}
    assert manager.get_notices(created.id)[-1].title == "Answer saved locally"


def test_answers_after_completion_are_not_forwarded(manager, persistence):
    created = manager.create_session("python", "easy", 3)
    manager.submit(created.id)

    manager.answer(created.id, _ids(created)[0], "a0")

    assert persistence.upsert_calls == []


def test_sessions_resume_from_local_snapshots(generator, persistence, camera, settings, connectivity, clock):
    first = QuizManager(generator, persistence, camera, settings=settings, connectivity=connectivity, clock=clock)
    created = first.create_session("python", "easy", 3, time_limit_minutes=2)
    _open(first, created.id)
    first.answer(created.id, _ids(created)[1], "b1")
    first.next_question(created.id)
    first.shutdown()

    second = QuizManager(generator, persistence, camera, settings=settings, connectivity=connectivity, clock=clock)
    restored = second.get_session(created.id)

    assert restored.current_question_index == 1
    assert restored.questions[1].user_answer == "b1"
    assert restored.started_at == created.created_at
    assert restored.state is SessionState.IN_PROGRESS


def test_load_session_falls_back_to_persistence(manager, persistence, generator, camera, settings, clock):
    other = QuizManager(
        generator, persistence, camera, settings=ProctorSettings(data_dir=settings.data_dir / "other"), clock=clock
    )
    created = other.create_session("python", "easy", 2)
    other.submit(created.id)

    loaded = asyncio.run(manager.load_session(created.id))

    assert loaded.is_completed
    with pytest.raises(SessionNotFoundError):
        asyncio.run(manager.load_session("missing"))


def test_completed_sessions_are_archived_and_cleared(manager, settings):
    kept = manager.create_session("python", "easy", 2)
    done = manager.create_session("python", "easy", 2)
    manager.submit(done.id)

    assert not (settings.active_snapshot_dir / f"{done.id}.json").exists()
    assert (settings.archive_snapshot_dir / f"{done.id}.json").exists()
    assert manager.clear_completed_sessions() == [done.id]
    assert [s.id for s in manager.list_sessions()] == [kept.id]


def test_delete_session(manager):
    created = manager.create_session("python", "easy", 2)
    _open(manager, created.id)

    manager.delete_session(created.id)

    assert not manager.is_open(created.id)
    with pytest.raises(SessionNotFoundError):
        manager.get_session(created.id)
    with pytest.raises(SessionNotFoundError):
        manager.delete_session(created.id)


def test_export_question_set(manager, tmp_path):
    created = manager.create_session("python", "medium", 2, subtopic="basics")

    path = manager.export_question_set(created.id, tmp_path / "export" / "set.txt")
    bank = load_bank_from_file(path)

    assert [entry.question.question_text for entry in bank] == ["Question 0?", "Question 1?"]
    assert bank[1].question.correct_option == "a1"
    assert bank[0].difficulty == "medium"
    assert bank[0].subtopic == "basics"


class _RecordingSpeech:
    def __init__(self, fail=False):
        self.fail = fail
        self.spoken = []

    def speak(self, text):
        if self.fail:
            raise SpeechUnavailableError("no voices")
        self.spoken.append(text)

    def cancel(self):
        pass


def test_read_aloud(generator, persistence, camera, settings, clock):
    speech = _RecordingSpeech()
    manager = QuizManager(generator, persistence, camera, settings=settings, speech=speech, clock=clock)
    created = manager.create_session("python", "easy", 2)

    assert manager.read_current_question_aloud(created.id)
    assert speech.spoken == ["Question 0?"]


def test_read_aloud_degrades_when_speech_is_missing(generator, persistence, camera, settings, clock):
    speech = _RecordingSpeech(fail=True)
    manager = QuizManager(generator, persistence, camera, settings=settings, speech=speech, clock=clock)
    created = manager.create_session("python", "easy", 2)

    assert not manager.read_current_question_aloud(created.id)
    assert not manager.read_current_question_aloud(created.id)
    assert len(manager.get_notices(created.id)) == 1

    without_port = QuizManager(generator, persistence, camera, settings=settings, clock=clock)
    assert not without_port.read_current_question_aloud(created.id)

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from proctor_quiz.core.errors import CameraUnavailableError, TransientIOError
from proctor_quiz.core.models import GeneratedQuestion, Question, QuizSession
from proctor_quiz.core.quiz_manager import QuizManager
from proctor_quiz.core.services.connectivity import ConnectivityMonitor
from proctor_quiz.core.settings import ProctorSettings

T0 = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RecordingPersistence:
    """Persistence sink that keeps everything in memory and can fail on demand."""

    def __init__(self) -> None:
        self.sessions = {}
        self.answers = {}
        self.upsert_calls = []
        self.activity = []
        self.fail_upserts_for = set()
        self.fail_activity_log = False
        self.on_upsert = None

    async def save_session(self, session):
        self.sessions[session.id] = session

    async def load_session(self, session_id):
        return self.sessions.get(session_id)

    async def append_activity_log(self, user_id, session_id, event_kind, detail):
        if self.fail_activity_log:
            raise TransientIOError("activity log unavailable")
        self.activity.append((user_id, session_id, event_kind, detail))

    async def upsert_answer(self, user_id, session_id, question_id, answer):
        self.upsert_calls.append((session_id, question_id, answer))
        if self.on_upsert is not None:
            self.on_upsert(session_id, question_id, answer)
        if question_id in self.fail_upserts_for:
            raise TransientIOError(f"upsert failed for {question_id}")
        self.answers.setdefault(session_id, {})[question_id] = answer


class StaticGenerator:
    def __init__(self) -> None:
        self.requests = []

    def generate(self, topic, difficulty, count, subtopic=None, instructions=None):
        self.requests.append((topic, difficulty, count, subtopic, instructions))
        return [
            GeneratedQuestion(
                question_text=f"Question {i}?",
                options=[f"a{i}", f"b{i}", f"c{i}", f"d{i}"],
                correct_option=f"a{i}",
            )
            for i in range(count)
        ]


class FakeStream:
    def __init__(self, frames=None) -> None:
        self.frames = list(frames or [])
        self.stopped = False

    def read_frame(self):
        if self.frames:
            return self.frames.pop(0)
        return np.zeros((120, 160), dtype=np.uint8)

    def stop(self) -> None:
        self.stopped = True


class FakeCamera:
    def __init__(self, denied: bool = False) -> None:
        self.denied = denied
        self.streams = []

    def request_stream(self):
        if self.denied:
            raise CameraUnavailableError("Permission denied")
        stream = FakeStream()
        self.streams.append(stream)
        return stream


def make_session(question_count: int = 3, time_limit_seconds: int | None = None) -> QuizSession:
    questions = [
        Question(
            id=f"q{i}",
            question_text=f"Question {i}?",
            options=[f"a{i}", f"b{i}", f"c{i}", f"d{i}"],
            correct_option=f"a{i}",
        )
        for i in range(question_count)
    ]
    per_question = None
    if time_limit_seconds is not None:
        per_question = max(10, time_limit_seconds // question_count)
    return QuizSession(
        id="session-1",
        topic="python",
        difficulty="easy",
        questions=questions,
        created_at=T0,
        user_id="user-1",
        total_time_limit_seconds=time_limit_seconds,
        per_question_time_seconds=per_question,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def persistence():
    return RecordingPersistence()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def generator():
    return StaticGenerator()


@pytest.fixture
def settings(tmp_path):
    return ProctorSettings(data_dir=tmp_path / "data")


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(online=True, probe=lambda: True)


@pytest.fixture
def manager(generator, persistence, camera, settings, connectivity, clock):
    quiz_manager = QuizManager(
        generator=generator,
        persistence=persistence,
        camera=camera,
        settings=settings,
        connectivity=connectivity,
        clock=clock,
    )
    yield quiz_manager
    quiz_manager.shutdown()

"""Domain models for the proctored quiz."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SessionState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TerminationReason(str, Enum):
    COMPLETED = "completed"
    TIME_UP = "time_up"
    CHEATING = "cheating"


class IntegrityEventKind(str, Enum):
    TAB_SWITCH = "tab_switch"
    CLIPBOARD_COPY = "clipboard_copy"
    CLIPBOARD_PASTE = "clipboard_paste"
    CLIPBOARD_CUT = "clipboard_cut"
    CONTEXT_MENU = "context_menu"
    MOTION_DETECTED = "motion_detected"


@dataclass(slots=True)
class GeneratedQuestion:
    """Raw question as returned by a question generator."""

    question_text: str
    options: list[str]
    correct_option: str


@dataclass(slots=True)
class Question:
    """Multiple-choice question owned by a quiz session."""

    id: str
    question_text: str
    options: list[str]
    correct_option: str
    user_answer: str | None = None
    is_correct: bool | None = None  # Only computed when the session completes


@dataclass(slots=True)
class QuizSession:
    """Mutable session record. Only the session state machine writes to it."""

    id: str
    topic: str
    difficulty: str
    questions: list[Question]
    created_at: datetime
    subtopic: str | None = None
    additional_instructions: str | None = None
    user_id: str | None = None
    challenger_name: str | None = None
    current_question_index: int = 0
    state: SessionState = SessionState.CREATED
    started_at: datetime | None = None
    total_time_limit_seconds: int | None = None
    per_question_time_seconds: int | None = None
    completed_at: datetime | None = None
    termination_reason: TerminationReason | None = None
    cheating_flag_count: int = 0
    score: int | None = None
    total_time_taken_seconds: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True, slots=True)
class IntegrityEvent:
    """One recorded integrity violation. Never mutated after creation."""

    kind: IntegrityEventKind
    timestamp: datetime
    session_id: str
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    """An activity-log write that the persistence sink has not accepted yet."""

    user_id: str | None
    session_id: str
    event_kind: str
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class QuestionSnapshot:
    id: str
    question_text: str
    options: tuple[str, ...]
    correct_option: str
    user_answer: str | None
    is_correct: bool | None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a quiz session handed to every external reader."""

    id: str
    topic: str
    difficulty: str
    questions: tuple[QuestionSnapshot, ...]
    created_at: datetime
    subtopic: str | None
    additional_instructions: str | None
    user_id: str | None
    challenger_name: str | None
    current_question_index: int
    state: SessionState
    started_at: datetime | None
    total_time_limit_seconds: int | None
    per_question_time_seconds: int | None
    completed_at: datetime | None
    termination_reason: TerminationReason | None
    cheating_flag_count: int
    score: int | None
    total_time_taken_seconds: int | None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> QuestionSnapshot:
        return self.questions[self.current_question_index]

    @classmethod
    def from_session(cls, session: QuizSession) -> SessionSnapshot:
        return cls(
            id=session.id,
            topic=session.topic,
            difficulty=session.difficulty,
            questions=tuple(
                QuestionSnapshot(
                    id=question.id,
                    question_text=question.question_text,
                    options=tuple(question.options),
                    correct_option=question.correct_option,
                    user_answer=question.user_answer,
                    is_correct=question.is_correct,
                )
                for question in session.questions
            ),
            created_at=session.created_at,
            subtopic=session.subtopic,
            additional_instructions=session.additional_instructions,
            user_id=session.user_id,
            challenger_name=session.challenger_name,
            current_question_index=session.current_question_index,
            state=session.state,
            started_at=session.started_at,
            total_time_limit_seconds=session.total_time_limit_seconds,
            per_question_time_seconds=session.per_question_time_seconds,
            completed_at=session.completed_at,
            termination_reason=session.termination_reason,
            cheating_flag_count=session.cheating_flag_count,
            score=session.score,
            total_time_taken_seconds=session.total_time_taken_seconds,
        )

    def to_session(self) -> QuizSession:
        """Rebuild a mutable record, used when resuming from storage."""
        return QuizSession(
            id=self.id,
            topic=self.topic,
            difficulty=self.difficulty,
            questions=[
                Question(
                    id=question.id,
                    question_text=question.question_text,
                    options=list(question.options),
                    correct_option=question.correct_option,
                    user_answer=question.user_answer,
                    is_correct=question.is_correct,
                )
                for question in self.questions
            ],
            created_at=self.created_at,
            subtopic=self.subtopic,
            additional_instructions=self.additional_instructions,
            user_id=self.user_id,
            challenger_name=self.challenger_name,
            current_question_index=self.current_question_index,
            state=self.state,
            started_at=self.started_at,
            total_time_limit_seconds=self.total_time_limit_seconds,
            per_question_time_seconds=self.per_question_time_seconds,
            completed_at=self.completed_at,
            termination_reason=self.termination_reason,
            cheating_flag_count=self.cheating_flag_count,
            score=self.score,
            total_time_taken_seconds=self.total_time_taken_seconds,
        )


class NoticeLevel(str, Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    TERMINATION = "termination"


class NoticeAction(str, Enum):
    RETRY = "retry"
    RELOAD = "reload"


@dataclass(frozen=True, slots=True)
class Notice:
    """User-visible message attached to a session."""

    id: str
    session_id: str
    level: NoticeLevel
    title: str
    message: str
    created_at: datetime
    action: NoticeAction | None = None
    dismissible: bool = False


@dataclass(slots=True)
class SyncReport:
    """Outcome of one offline sync pass."""

    synced_pairs: int = 0
    cleared_sessions: list[str] = field(default_factory=list)
    failed_session: str | None = None
    replayed_log_entries: int = 0

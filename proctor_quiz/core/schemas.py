"""Pydantic schemas used to serialize session snapshots to JSON."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from proctor_quiz.core.models import QuestionSnapshot, SessionSnapshot, SessionState, TerminationReason


class StoredQuestion(BaseModel):
    id: str
    question_text: str
    options: list[str]
    correct_option: str
    user_answer: str | None = None
    is_correct: bool | None = None


class StoredSession(BaseModel):
    """On-disk and over-the-wire form of a SessionSnapshot."""

    id: str
    topic: str
    difficulty: str
    questions: list[StoredQuestion]
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

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> StoredSession:
        return cls(
            id=snapshot.id,
            topic=snapshot.topic,
            difficulty=snapshot.difficulty,
            questions=[
                StoredQuestion(
                    id=question.id,
                    question_text=question.question_text,
                    options=list(question.options),
                    correct_option=question.correct_option,
                    user_answer=question.user_answer,
                    is_correct=question.is_correct,
                )
                for question in snapshot.questions
            ],
            created_at=snapshot.created_at,
            subtopic=snapshot.subtopic,
            additional_instructions=snapshot.additional_instructions,
            user_id=snapshot.user_id,
            challenger_name=snapshot.challenger_name,
            current_question_index=snapshot.current_question_index,
            state=snapshot.state,
            started_at=snapshot.started_at,
            total_time_limit_seconds=snapshot.total_time_limit_seconds,
            per_question_time_seconds=snapshot.per_question_time_seconds,
            completed_at=snapshot.completed_at,
            termination_reason=snapshot.termination_reason,
            cheating_flag_count=snapshot.cheating_flag_count,
            score=snapshot.score,
            total_time_taken_seconds=snapshot.total_time_taken_seconds,
        )

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            topic=self.topic,
            difficulty=self.difficulty,
            questions=tuple(
                QuestionSnapshot(
                    id=question.id,
                    question_text=question.question_text,
                    options=tuple(question.options),
                    correct_option=question.correct_option,
                    user_answer=question.user_answer,
                    is_correct=question.is_correct,
                )
                for question in self.questions
            ),
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


def dump_snapshot(snapshot: SessionSnapshot) -> str:
    return StoredSession.from_snapshot(snapshot).model_dump_json(indent=2)


def load_snapshot(raw: str) -> SessionSnapshot:
    return StoredSession.model_validate_json(raw).to_snapshot()

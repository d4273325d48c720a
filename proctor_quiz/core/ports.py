"""Interfaces of the collaborators the quiz core depends on."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from proctor_quiz.core.models import GeneratedQuestion, SessionSnapshot


class QuestionGenerator(Protocol):
    def generate(
        self,
        topic: str,
        difficulty: str,
        count: int,
        subtopic: str | None = None,
        instructions: str | None = None,
    ) -> list[GeneratedQuestion]:
        """Return an ordered question set; every correct option must be one of its options."""
        ...


class PersistencePort(Protocol):
    """Durable remote storage. Every call may raise TransientIOError."""

    async def save_session(self, session: SessionSnapshot) -> None: ...

    async def load_session(self, session_id: str) -> SessionSnapshot | None: ...

    async def append_activity_log(
        self,
        user_id: str | None,
        session_id: str,
        event_kind: str,
        detail: str | None,
    ) -> None: ...

    async def upsert_answer(
        self,
        user_id: str | None,
        session_id: str,
        question_id: str,
        answer: str,
    ) -> None:
        """Store an answer. Replays of the same question id must overwrite, not duplicate."""
        ...


class FrameStream(Protocol):
    def read_frame(self) -> np.ndarray:
        """Return the latest frame as an HxW or HxWxC uint8 array."""
        ...

    def stop(self) -> None: ...


class CameraPort(Protocol):
    def request_stream(self) -> FrameStream:
        """Open the camera or raise CameraUnavailableError."""
        ...


class SpeechPort(Protocol):
    def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...

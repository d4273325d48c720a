"""Durable local store of answers that the persistence sink has not confirmed."""

from __future__ import annotations

import logging
from pathlib import Path

from proctor_quiz.utils.json_files import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class OfflineAnswerBuffer:
    """Maps ``session id -> {question id: answer}`` in a single JSON document.

    This class is the only writer of the document. Each write rewrites the file
    atomically, so a crash leaves either the old or the new content.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._entries: dict[str, dict[str, str]] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def put(self, session_id: str, question_id: str, answer: str) -> None:
        self._entries.setdefault(session_id, {})[question_id] = answer
        self._flush()
        logger.debug("Buffered answer for %s/%s", session_id, question_id)

    def get(self, session_id: str) -> dict[str, str]:
        return dict(self._entries.get(session_id, {}))

    def session_ids(self) -> list[str]:
        return list(self._entries)

    def has_pending(self, session_id: str | None = None) -> bool:
        if session_id is None:
            return bool(self._entries)
        return bool(self._entries.get(session_id))

    def clear(self, session_id: str) -> None:
        if self._entries.pop(session_id, None) is not None:
            self._flush()

    def discard(self, session_id: str, sent: dict[str, str]) -> None:
        """Drop the replayed pairs whose buffered value is still the one that was sent.

        Answers buffered or overwritten while the replay was in flight stay
        pending for the next pass.
        """
        entries = self._entries.get(session_id)
        if not entries:
            return
        for question_id, answer in sent.items():
            if entries.get(question_id) == answer:
                del entries[question_id]
        if not entries:
            del self._entries[session_id]
        self._flush()

    def _load(self) -> dict[str, dict[str, str]]:
        try:
            raw = read_json(self._path, default={})
        except ValueError:
            raw = None
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed offline buffer at %s", self._path)
            return {}
        return {
            str(session_id): {str(qid): str(answer) for qid, answer in answers.items()}
            for session_id, answers in raw.items()
            if isinstance(answers, dict) and answers
        }

    def _flush(self) -> None:
        write_json_atomic(self._path, self._entries)

"""Question generator backed by text question banks, one file per topic."""

from __future__ import annotations

import logging
from pathlib import Path
import random

from proctor_quiz.constants.storage_constants import QUESTION_BANK_DIR
from proctor_quiz.core.errors import QuestionGenerationError
from proctor_quiz.core.models import GeneratedQuestion
from proctor_quiz.core.quiz_importer import BankQuestion, load_bank_from_file

logger = logging.getLogger(__name__)

BUNDLED_BANK_DIR = Path(__file__).resolve().parent.parent / "data" / QUESTION_BANK_DIR


def topic_file_name(topic: str) -> str:
    slug = "".join(ch if ch.isalnum() else "_" for ch in topic.strip().lower()).strip("_")
    if not slug:
        raise QuestionGenerationError("Topic must not be empty.")
    return f"{slug}.txt"


class QuestionBankGenerator:
    """Samples questions from ``<bank_dir>/<topic>.txt``.

    Questions tagged with another difficulty or subtopic are skipped; untagged
    questions fit every request. ``instructions`` is accepted for interface
    compatibility and ignored.
    """

    def __init__(self, bank_dir: Path, seed: int | None = None) -> None:
        self._bank_dir = Path(bank_dir)
        self._rng = random.Random(seed)

    def generate(
        self,
        topic: str,
        difficulty: str,
        count: int,
        subtopic: str | None = None,
        instructions: str | None = None,
    ) -> list[GeneratedQuestion]:
        if count < 1:
            raise QuestionGenerationError("At least one question must be requested.")
        bank_path = self._bank_dir / topic_file_name(topic)
        if not bank_path.exists():
            raise QuestionGenerationError(f"No question bank found for topic '{topic}'.")

        candidates = [
            entry.question
            for entry in load_bank_from_file(bank_path)
            if _matches(entry, difficulty, subtopic)
        ]
        if not candidates:
            raise QuestionGenerationError(
                f"Question bank for '{topic}' has no {difficulty} questions"
                + (f" on '{subtopic}'." if subtopic else ".")
            )
        if len(candidates) < count:
            logger.info(
                "Only %d question(s) available for %s/%s; requested %d",
                len(candidates),
                topic,
                difficulty,
                count,
            )
        picked = self._rng.sample(candidates, k=min(count, len(candidates)))
        return [
            GeneratedQuestion(
                question_text=question.question_text,
                options=list(question.options),
                correct_option=question.correct_option,
            )
            for question in picked
        ]


def _matches(entry: BankQuestion, difficulty: str, subtopic: str | None) -> bool:
    if entry.difficulty is not None and entry.difficulty != difficulty:
        return False
    if subtopic and entry.subtopic is not None and entry.subtopic.lower() != subtopic.strip().lower():
        return False
    return True

"""Export a session's question set in the text format used for question banks."""

from __future__ import annotations

from pathlib import Path

from proctor_quiz.core.models import SessionSnapshot

_OPTION_LETTERS = ("A", "B", "C", "D")


def save_question_set_to_file(file_path: Path, snapshot: SessionSnapshot) -> Path:
    """Write the questions (without any user answers) so the set can be shared."""

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_question_set(snapshot), encoding="utf-8")
    return file_path


def serialize_question_set(snapshot: SessionSnapshot) -> str:
    blocks = [
        _serialize_question(question.question_text, question.options, question.correct_option, snapshot)
        for question in snapshot.questions
    ]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(
    question_text: str,
    options: tuple[str, ...],
    correct_option: str,
    snapshot: SessionSnapshot,
) -> str:
    if len(options) != len(_OPTION_LETTERS):
        raise ValueError("Only four-option questions can be exported.")

    lines: list[str] = []
    question_lines = question_text.splitlines() or [question_text]
    lines.append(f"Q: {question_lines[0] if question_lines else ''}")
    lines.extend(question_lines[1:])

    for letter, option_text in zip(_OPTION_LETTERS, options):
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0] if option_lines else ''}")
        lines.extend(option_lines[1:])

    lines.append(f"CORRECT: {_OPTION_LETTERS[options.index(correct_option)]}")
    lines.append(f"DIFFICULTY: {snapshot.difficulty}")
    if snapshot.subtopic:
        lines.append(f"SUBTOPIC: {snapshot.subtopic}")
    return "\n".join(lines)
